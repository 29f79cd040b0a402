from dataclasses import dataclass, asdict
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MonitorStatus(str, Enum):
    ACTIVE = "active"
    ERROR = "error"


class RequestHeader(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    value: str


class CheckRequest(BaseModel):
    """
    The command received from the scheduler asking for one monitor to be probed.
    Field names on the wire are camelCase; ``status`` is the monitor's last known status.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, coerce_numbers_to_str=True)

    monitor_id: str = Field(alias="monitorId", min_length=1)
    workspace_id: str = Field(default="", alias="workspaceId")
    url: str
    status: MonitorStatus
    cron_timestamp: int = Field(default=0, alias="cronTimestamp")
    method: str = "GET"
    headers: List[RequestHeader] = Field(default_factory=list)
    body: str = ""

    @field_validator("method")
    @classmethod
    def normalise_method(cls, value):
        return value.strip().upper() or "GET"


def camel_case(name):
    first, *rest = name.split("_")
    return first + "".join(part.title() for part in rest)


@dataclass
class ProbeResult:
    """
    The outcome of a probe which received an HTTP response. This is also the record
    sent to the telemetry sink when an attempt completes.
    """

    monitor_id: str
    workspace_id: str
    url: str
    region: str
    timestamp: int
    cron_timestamp: int
    status_code: int
    latency: int
    message: Optional[str] = None

    def is_successful(self):
        return 200 <= self.status_code < 300

    def asdict(self):
        return {camel_case(key): value for key, value in asdict(self).items()}


@dataclass
class FailureRecord:
    """
    Telemetry record sent instead of a ProbeResult when every attempt failed to reach the target.
    """

    url: str
    region: str
    message: str
    cron_timestamp: int
    timestamp: int
    monitor_id: str
    workspace_id: str

    def asdict(self):
        record = {camel_case(key): value for key, value in asdict(self).items()}
        record.update(statusCode=None, latency=None)
        return record


@dataclass
class StatusUpdate:
    monitor_id: str
    status: MonitorStatus
    region: str
    check_time: str
    status_code: Optional[int] = None
    message: Optional[str] = None

    def asdict(self):
        record = asdict(self)
        record["status"] = self.status.value
        return record
