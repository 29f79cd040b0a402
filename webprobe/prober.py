import http.client
import logging
import time
import urllib.parse

from .model import CheckRequest, ProbeResult

DEFAULT_USER_AGENT = "webprobe/0.1.0"


class ProbeTransportError(Exception):
    """
    The probe could not get an HTTP response from the target: a malformed URL,
    DNS failure, refused connection, TLS failure or timeout.
    """

    def __init__(self, url, cause):
        super().__init__(str(cause))
        self.url = url
        self.cause = cause


class Prober(object):
    """
    Sends exactly one HTTP request to a monitor's URL per call to probe(). Holds no
    per-request state so a single instance is shared between all request threads.
    """

    def __init__(self, timeout=45.0, user_agent=DEFAULT_USER_AGENT):
        self.logger = logging.getLogger(__name__ + ".Prober")
        self.timeout = timeout
        self.user_agent = user_agent

    def probe(self, request: CheckRequest, region) -> ProbeResult:
        """
        Probe the URL in the request. Any response, whatever its status code, is returned as
        a ProbeResult; failure to get a response at all raises ProbeTransportError.
        """
        try:
            split = urllib.parse.urlsplit(request.url)
        except ValueError as exc:
            raise ProbeTransportError(request.url, exc) from exc
        if split.scheme == "http":
            connection_class = http.client.HTTPConnection
        elif split.scheme == "https":
            connection_class = http.client.HTTPSConnection
        else:
            raise ProbeTransportError(request.url, f"unsupported URL scheme in {request.url!r}")
        if not split.hostname:
            raise ProbeTransportError(request.url, f"no host in URL {request.url!r}")

        timestamp = int(time.time() * 1000)
        self.logger.debug("Probing monitor %s (url %s)", request.monitor_id, request.url)
        try:
            status, elapsed = self.do_request(connection_class, split, request)
        except Exception as exc:
            # Unreachable targets are expected, so don't log above DEBUG here:
            self.logger.debug("Exception probing %s (url %s)", request.monitor_id, request.url, exc_info=True)
            raise ProbeTransportError(request.url, exc) from exc

        self.logger.debug("Probe of %s returned %d in %f secs", request.monitor_id, status, elapsed)

        return ProbeResult(
            monitor_id=request.monitor_id,
            workspace_id=request.workspace_id,
            url=request.url,
            region=region,
            timestamp=timestamp,
            cron_timestamp=request.cron_timestamp,
            status_code=status,
            latency=int(elapsed * 1000.0),
        )

    def do_request(self, connection_class, split, request):
        """
        Connect and send the request, returning the response status and the elapsed time
        in seconds. Connection and protocol errors are raised.
        """
        client = connection_class(split.netloc, timeout=self.timeout)
        try:
            req_line = split.path
            if not req_line.startswith("/"):
                req_line = "/" + req_line
            if split.query:
                req_line += f"?{split.query}"

            headers = {header.key: header.value for header in request.headers}
            if not any(key.lower() == "user-agent" for key in headers):
                headers["User-Agent"] = self.user_agent
            body = request.body.encode("utf-8") if request.body else None

            # Latency covers DNS, connect and TLS as well as the response, as a user would see it
            req_start_time = time.perf_counter()
            client.request(request.method, req_line, body=body, headers=headers)
            resp = client.getresponse()
            req_end_time = time.perf_counter()
            resp.read()
            return resp.status, req_end_time - req_start_time
        finally:
            client.close()
