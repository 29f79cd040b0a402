"""
The check pipeline: probe a monitor's URL, decide whether its status changed, report the
change to the status store and publish telemetry, retrying with exponential backoff while
the target can't be reached at all.
"""
from enum import Enum
import logging
import random
import threading
import time
from typing import NamedTuple, Optional

from .model import CheckRequest, FailureRecord, MonitorStatus, StatusUpdate
from .prober import ProbeTransportError
from .transition import decide_transition


class RetryPolicy(NamedTuple):
    """
    Exponential backoff between attempts. The delay before retry n (counting from 0) is
    initial_interval * multiplier ** n, capped at max_interval, then randomized to within
    +/- randomization_factor of that value.
    """

    # Retries after the first attempt, so max_retries + 1 attempts in total
    max_retries: int = 3
    initial_interval: float = 0.5
    multiplier: float = 1.5
    randomization_factor: float = 0.5
    max_interval: float = 60.0

    def delay(self, retry, rand=random.random):
        interval = min(self.initial_interval * self.multiplier ** retry, self.max_interval)
        delta = self.randomization_factor * interval
        return interval - delta + (rand() * 2 * delta)


class RunState(Enum):
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"


class RunOutcome(NamedTuple):
    state: RunState
    attempts: int
    error: Optional[Exception] = None


def utc_now_iso():
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


class CheckPipeline(object):
    """
    Runs check requests. The collaborators are shared by all request threads:

    - prober: probe(request, region) returning a ProbeResult or raising ProbeTransportError
    - status_reporter: update_status(StatusUpdate)
    - telemetry: send(monitor_id, ProbeResult or FailureRecord)

    Errors from the status reporter and telemetry are logged and never fail a run.
    Setting stop_event aborts any run which is waiting to retry.
    """

    def __init__(self, prober, status_reporter, telemetry, region, retry_policy=None, stop_event=None):
        self.logger = logging.getLogger(__name__ + ".CheckPipeline")
        self.prober = prober
        self.status_reporter = status_reporter
        self.telemetry = telemetry
        self.region = region
        self.retry_policy = retry_policy or RetryPolicy()
        self.stop_event = stop_event or threading.Event()

    def run(self, request: CheckRequest) -> RunOutcome:
        attempts = 0
        last_error = None
        while attempts <= self.retry_policy.max_retries:
            delay = 0
            if attempts:
                delay = self.retry_policy.delay(attempts - 1)
                self.logger.debug("Retrying %s in %.3f secs", request.monitor_id, delay)
            if self.stop_event.wait(delay):
                self.logger.warning("Check of %s cancelled after %d attempt(s)", request.monitor_id, attempts)
                return RunOutcome(RunState.CANCELLED, attempts, last_error)

            attempts += 1
            try:
                self.attempt(request)
            except ProbeTransportError as exc:
                self.logger.info("Attempt %d to probe %s failed: %s", attempts, request.monitor_id, exc)
                last_error = exc
                continue

            return RunOutcome(RunState.SUCCEEDED, attempts)

        self.report_failure(request, last_error)
        return RunOutcome(RunState.EXHAUSTED, attempts, last_error)

    def attempt(self, request):
        result = self.prober.probe(request, self.region)

        new_status = decide_transition(request.status, result.is_successful())
        if new_status is not None:
            self.report_status(
                StatusUpdate(
                    monitor_id=request.monitor_id,
                    status=new_status,
                    region=self.region,
                    check_time=utc_now_iso(),
                    status_code=result.status_code,
                )
            )

        self.send_telemetry(request.monitor_id, result)

    def report_failure(self, request, error):
        message = f"unable to ping: {error}"
        self.logger.warning("All attempts to probe %s failed, last error: %s", request.monitor_id, error)
        self.send_telemetry(
            request.monitor_id,
            FailureRecord(
                url=request.url,
                region=self.region,
                message=message,
                cron_timestamp=request.cron_timestamp,
                timestamp=request.cron_timestamp,
                monitor_id=request.monitor_id,
                workspace_id=request.workspace_id,
            ),
        )

        # A monitor which wasn't active is assumed to already be recorded as in error
        if request.status == MonitorStatus.ACTIVE:
            self.report_status(
                StatusUpdate(
                    monitor_id=request.monitor_id,
                    status=MonitorStatus.ERROR,
                    region=self.region,
                    check_time=utc_now_iso(),
                    message=message,
                )
            )

    def report_status(self, update):
        try:
            self.status_reporter.update_status(update)
        except Exception as exc:
            self.logger.error("Unexpected error updating status of %s: %s", update.monitor_id, exc, exc_info=exc)

    def send_telemetry(self, monitor_id, record):
        try:
            self.telemetry.send(monitor_id, record)
        except Exception as exc:
            self.logger.error("Unexpected error sending telemetry for %s: %s", monitor_id, exc, exc_info=exc)
