import pytest

from webprobe.config import CheckerConfig, ConfigurationError, StatusStoreConfig, loglevel_from_env

ALL_VARS = (
    "FLY_REGION",
    "PORT",
    "WPR_CRON_SECRET",
    "WPR_PORT",
    "WPR_DRAIN_TIMEOUT",
    "WPR_PROBE_TIMEOUT",
    "WPR_MAX_CHECKS",
    "WPR_TELEMETRY_TOPIC",
    "WPR_KAFKA_BOOT_SERVERS",
    "WPR_KAFKA_CERTFILE",
    "WPR_KAFKA_KEYFILE",
    "WPR_KAFKA_CAFILE",
    "WPR_DB_CONN_STR",
)


@pytest.fixture
def minimal_env(monkeypatch):
    """
    Only the environment variables without a default are set
    """
    for name in ALL_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("WPR_KAFKA_BOOT_SERVERS", "kafka1:9092,kafka2:9092")
    monkeypatch.setenv("WPR_DB_CONN_STR", "dbname=webprobe")
    return monkeypatch


def test_defaults(minimal_env):
    config = CheckerConfig.from_environment()

    assert config.region == "local"
    assert config.cron_secret == ""
    assert config.port == 8080
    assert config.drain_timeout == 60
    assert config.probe_timeout == 45
    assert config.drain_timeout >= config.probe_timeout
    assert config.max_concurrent_checks == 500
    assert config.telemetry_topic == "webprobe.pings"
    assert config.kafka_bootstrap_servers == ["kafka1:9092", "kafka2:9092"]
    assert (config.kafka_certfile, config.kafka_keyfile, config.kafka_cafile) == (None, None, None)
    assert config.database_conn_str == "dbname=webprobe"


def test_all_values(minimal_env):
    minimal_env.setenv("FLY_REGION", "ams")
    minimal_env.setenv("WPR_CRON_SECRET", "s3cret")
    minimal_env.setenv("WPR_PORT", "9000")
    minimal_env.setenv("WPR_DRAIN_TIMEOUT", "5")
    minimal_env.setenv("WPR_PROBE_TIMEOUT", "2.5")
    minimal_env.setenv("WPR_MAX_CHECKS", "64")
    minimal_env.setenv("WPR_TELEMETRY_TOPIC", "pings")
    minimal_env.setenv("WPR_KAFKA_CERTFILE", "/certs/client.pem")
    minimal_env.setenv("WPR_KAFKA_KEYFILE", "/certs/client.key")
    minimal_env.setenv("WPR_KAFKA_CAFILE", "/certs/ca.pem")

    config = CheckerConfig.from_environment()

    assert config.region == "ams"
    assert config.cron_secret == "s3cret"
    assert config.port == 9000
    assert config.drain_timeout == 5
    assert config.probe_timeout == 2.5
    assert config.max_concurrent_checks == 64
    assert config.telemetry_topic == "pings"
    assert config.kafka_certfile == "/certs/client.pem"
    assert config.kafka_keyfile == "/certs/client.key"
    assert config.kafka_cafile == "/certs/ca.pem"


def test_port_falls_back_to_platform_port(minimal_env):
    minimal_env.setenv("PORT", "8081")
    assert CheckerConfig.from_environment().port == 8081

    minimal_env.setenv("WPR_PORT", "8082")
    assert CheckerConfig.from_environment().port == 8082


@pytest.mark.parametrize("missing", ["WPR_KAFKA_BOOT_SERVERS", "WPR_DB_CONN_STR"])
def test_required_values(minimal_env, missing):
    minimal_env.delenv(missing)
    with pytest.raises(ConfigurationError, match=missing):
        CheckerConfig.from_environment()


@pytest.mark.parametrize(
    "name,value",
    [
        ("WPR_PORT", "http"),
        ("WPR_PORT", "0"),
        ("WPR_PORT", "70000"),
        ("WPR_DRAIN_TIMEOUT", "0"),
        ("WPR_DRAIN_TIMEOUT", "soon"),
        ("WPR_PROBE_TIMEOUT", "0.5"),
        ("WPR_MAX_CHECKS", "0"),
        ("WPR_MAX_CHECKS", "lots"),
        ("WPR_TELEMETRY_TOPIC", ""),
    ],
)
def test_invalid_values(minimal_env, name, value):
    minimal_env.setenv(name, value)
    with pytest.raises(ConfigurationError):
        CheckerConfig.from_environment()


def test_partial_kafka_ssl_config(minimal_env):
    minimal_env.setenv("WPR_KAFKA_CERTFILE", "/certs/client.pem")
    with pytest.raises(ConfigurationError, match="WPR_KAFKA_KEYFILE"):
        CheckerConfig.from_environment()


def test_status_store_config(minimal_env):
    assert StatusStoreConfig.from_environment() == StatusStoreConfig(database_conn_str="dbname=webprobe")

    minimal_env.delenv("WPR_DB_CONN_STR")
    with pytest.raises(ConfigurationError):
        StatusStoreConfig.from_environment()


def test_loglevel(monkeypatch):
    monkeypatch.delenv("WPR_LOGLEVEL", raising=False)
    assert loglevel_from_env() == "WARNING"

    monkeypatch.setenv("WPR_LOGLEVEL", "debug")
    assert loglevel_from_env() == "DEBUG"
