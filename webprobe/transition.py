from typing import Optional

from .model import MonitorStatus


def decide_transition(previous: MonitorStatus, probe_succeeded: bool) -> Optional[MonitorStatus]:
    """
    Decide which status, if any, should be written to the status store after a probe
    which got a response.

    An unsuccessful response always reports ERROR, even when the monitor is already in
    error. A successful response only reports ACTIVE when recovering from ERROR, so the
    steady healthy state causes no writes.
    """
    if not probe_succeeded:
        return MonitorStatus.ERROR
    if previous == MonitorStatus.ERROR:
        return MonitorStatus.ACTIVE
    return None
