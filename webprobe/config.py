import os
from typing import List, NamedTuple, Optional


class ConfigurationError(Exception):
    """
    This exception indicates the app has been configured wrongly or a problem
    has been detected in parsing configuration.
    """


def kafka_config_from_env():
    """
    Read Kafka config values for the telemetry sink from environment vars.
    The SSL client certificate is optional; without it the connection is made in plaintext.
    """
    try:
        kafka_bootstrap_servers = os.environ["WPR_KAFKA_BOOT_SERVERS"].split(",")
    except Exception as exc:
        raise ConfigurationError(
            "Kafka bootstrap server(s) should be provided as a comma-separated list in env var WPR_KAFKA_BOOT_SERVERS"
        ) from exc

    ssl_files = [os.environ.get(f"WPR_KAFKA_{name}") for name in ("CERTFILE", "KEYFILE", "CAFILE")]
    if any(ssl_files) and not all(ssl_files):
        raise ConfigurationError(
            "Kafka SSL client cert, key and CA file paths should all be provided in env vars WPR_KAFKA_CERTFILE, WPR_KAFKA_KEYFILE and WPR_KAFKA_CAFILE"
        )
    kafka_certfile, kafka_keyfile, kafka_cafile = ssl_files

    return (kafka_bootstrap_servers, kafka_certfile, kafka_keyfile, kafka_cafile)


def database_conn_str_from_env():
    try:
        return os.environ["WPR_DB_CONN_STR"]
    except Exception as exc:
        raise ConfigurationError(
            "PostgreSQL database connection string should be provided in env var WPR_DB_CONN_STR"
        ) from exc


def loglevel_from_env():
    return os.environ.get("WPR_LOGLEVEL", "WARNING").upper()


def _number_from_env(name, default, convert, minimum):
    try:
        value = convert(os.environ.get(name, default))
    except Exception as exc:
        raise ConfigurationError(f"The value of env var {name} should be a number") from exc
    if value < minimum:
        raise ConfigurationError(f"The value of env var {name} must be at least {minimum}")
    return value


class StatusStoreConfig(NamedTuple):
    """
    Wraps the configuration for the status store admin commands
    """

    # Connection string for the PostgreSQL database holding monitor statuses
    database_conn_str: str

    @classmethod
    def from_environment(cls):
        return cls(database_conn_str=database_conn_str_from_env())


class CheckerConfig(NamedTuple):
    """
    Wraps the configuration for the checker service
    """

    # Region this checker runs in, reported with every status update and telemetry record
    region: str
    # Shared secret the scheduler sends in the Authorization header
    cron_secret: str
    # Port to listen on for check requests
    port: int
    # Seconds to wait for in-flight checks to finish on shutdown
    drain_timeout: int
    # Timeout in seconds for a single probe
    probe_timeout: float
    # Maximum number of checks running at once, each on its own worker thread
    max_concurrent_checks: int
    # List of Kafka bootstrap servers
    kafka_bootstrap_servers: List[str]
    # Kafka client certificate details, None for a plaintext connection
    kafka_cafile: Optional[str]
    kafka_certfile: Optional[str]
    kafka_keyfile: Optional[str]
    # Topic which telemetry records are published to
    telemetry_topic: str
    # Connection string for the PostgreSQL status store
    database_conn_str: str

    @classmethod
    def from_environment(cls):
        region = os.environ.get("FLY_REGION", "local")
        cron_secret = os.environ.get("WPR_CRON_SECRET", "")

        port = _number_from_env("WPR_PORT", os.environ.get("PORT", "8080"), int, 1)
        if port > 65535:
            raise ConfigurationError("The listen port must be at most 65535")

        drain_timeout = _number_from_env("WPR_DRAIN_TIMEOUT", "60", int, 1)
        probe_timeout = _number_from_env("WPR_PROBE_TIMEOUT", "45", float, 1)
        max_concurrent_checks = _number_from_env("WPR_MAX_CHECKS", "500", int, 1)

        telemetry_topic = os.environ.get("WPR_TELEMETRY_TOPIC", "webprobe.pings")
        if not telemetry_topic:
            raise ConfigurationError("The telemetry topic in env var WPR_TELEMETRY_TOPIC must not be empty")

        (
            kafka_bootstrap_servers,
            kafka_certfile,
            kafka_keyfile,
            kafka_cafile,
        ) = kafka_config_from_env()

        return cls(
            region=region,
            cron_secret=cron_secret,
            port=port,
            drain_timeout=drain_timeout,
            probe_timeout=probe_timeout,
            max_concurrent_checks=max_concurrent_checks,
            kafka_bootstrap_servers=kafka_bootstrap_servers,
            kafka_certfile=kafka_certfile,
            kafka_keyfile=kafka_keyfile,
            kafka_cafile=kafka_cafile,
            telemetry_topic=telemetry_topic,
            database_conn_str=database_conn_str_from_env(),
        )
