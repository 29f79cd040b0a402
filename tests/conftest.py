import pytest

from webprobe.config import CheckerConfig
from webprobe.model import CheckRequest, ProbeResult
from webprobe.prober import ProbeTransportError

SECRET = "s3cret"


def pytest_addoption(parser):
    parser.addoption(
        "--inttests",
        action="store_true",
        dest="inttests",
        default=False,
        help="Enable integration tests requiring a real Kafka cluster and PostgreSQL server",
    )


def checker_config(cron_secret=SECRET, max_concurrent_checks=500):
    return CheckerConfig(
        region="ams",
        cron_secret=cron_secret,
        port=8080,
        drain_timeout=60,
        probe_timeout=45,
        max_concurrent_checks=max_concurrent_checks,
        kafka_bootstrap_servers=["stub"],
        kafka_certfile=None,
        kafka_keyfile=None,
        kafka_cafile=None,
        telemetry_topic="webprobe.pings",
        database_conn_str="stub",
    )


def make_check_request(status="active", url="https://example.com/health", monitor_id="m1", **kwargs):
    """
    Create a CheckRequest for testing purposes
    """
    payload = dict(monitorId=monitor_id, workspaceId="w1", url=url, status=status, cronTimestamp=1700000000000)
    payload.update(kwargs)
    return CheckRequest.model_validate(payload)


class FakeProber(object):
    """
    Returns the given outcomes in order, repeating the last one. An integer outcome is
    returned as a response with that status code, an exception is raised.
    """

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def probe(self, request, region):
        self.calls.append(request)
        outcome = self.outcomes[min(len(self.calls), len(self.outcomes)) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return ProbeResult(
            monitor_id=request.monitor_id,
            workspace_id=request.workspace_id,
            url=request.url,
            region=region,
            timestamp=1700000000123,
            cron_timestamp=request.cron_timestamp,
            status_code=outcome,
            latency=42,
        )


class RecordingStatusReporter(object):
    def __init__(self, error=None):
        self.updates = []
        self.error = error

    def update_status(self, update):
        self.updates.append(update)
        if self.error is not None:
            raise self.error


class RecordingTelemetry(object):
    def __init__(self, error=None):
        self.records = []
        self.error = error

    def send(self, monitor_id, record):
        self.records.append((monitor_id, record))
        if self.error is not None:
            raise self.error


def connection_refused(url="https://example.com/health"):
    return ProbeTransportError(url, ConnectionRefusedError(111, "Connection refused"))


@pytest.fixture
def status_reporter():
    return RecordingStatusReporter()


@pytest.fixture
def telemetry():
    return RecordingTelemetry()
