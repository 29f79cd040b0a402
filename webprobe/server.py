"""
webprobe checker service: accepts authenticated check requests from the scheduler over HTTP
and runs each one through the check pipeline on a worker thread.
"""
import asyncio
from concurrent.futures import ThreadPoolExecutor
import hmac
import logging
import logging.config
import signal
import sys
import threading

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
import uvicorn

from . import get_logging_config
from .config import CheckerConfig, loglevel_from_env
from .model import CheckRequest
from .pipeline import CheckPipeline, RunState
from .prober import Prober
from .status_store import PostgresStatusStore
from .telemetry import KafkaTelemetrySink

logger = logging.getLogger(__name__)


def is_authorized(request: Request, cron_secret):
    if not cron_secret:
        return False
    supplied = request.headers.get("Authorization", "").encode("utf-8")
    return hmac.compare_digest(supplied, f"Basic {cron_secret}".encode("utf-8"))


def create_app(config: CheckerConfig, pipeline: CheckPipeline) -> FastAPI:
    app = FastAPI(title="webprobe checker", version="0.1.0", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.config = config
    app.state.pipeline = pipeline
    # Checks cancelled before finishing, when shutdown didn't drain in time
    app.state.abandoned_checks = 0
    # Each check holds a worker thread for all of its attempts and backoff waits
    app.state.executor = ThreadPoolExecutor(max_workers=config.max_concurrent_checks, thread_name_prefix="check-")

    @app.post("/checker")
    async def run_check(request: Request):
        if not is_authorized(request, config.cron_secret):
            return JSONResponse({"error": "unauthorized"}, status_code=401)

        try:
            check_request = CheckRequest.model_validate_json(await request.body())
        except ValidationError as exc:
            logger.error("Failed to decode checker request: %s", exc)
            return JSONResponse({"error": "invalid request"}, status_code=400)

        try:
            outcome = await asyncio.get_running_loop().run_in_executor(app.state.executor, pipeline.run, check_request)
        except asyncio.CancelledError:
            app.state.abandoned_checks += 1
            raise

        logger.debug("Check of %s %s after %d attempt(s)", check_request.monitor_id, outcome.state.value, outcome.attempts)
        if outcome.state == RunState.CANCELLED:
            return JSONResponse({"error": "shutting down"}, status_code=503)
        return {"message": "ok"}

    @app.get("/ping")
    def ping():
        return {"message": "pong", "fly_region": config.region}

    return app


class CheckerServer(uvicorn.Server):
    """
    uvicorn server which also tells in-flight checks to stop retrying when it's asked to exit.
    uvicorn itself stops accepting connections and drains in-flight requests.
    """

    def __init__(self, config, stop_event):
        super().__init__(config)
        self.stop_event = stop_event

    def handle_exit(self, sig, frame):
        self.stop_event.set()
        super().handle_exit(sig, frame)


def run_checker_app():
    logging.config.dictConfig(get_logging_config(loglevel_from_env()))
    config = CheckerConfig.from_environment()
    if not config.cron_secret:
        logger.warning("WPR_CRON_SECRET is empty, all check requests will be rejected")

    stop_event = threading.Event()

    def shutdown(signum, frame):
        stop_event.set()

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    telemetry = KafkaTelemetrySink(config)
    telemetry.ensure_topic()
    telemetry.start()
    status_store = PostgresStatusStore(config.database_conn_str)

    pipeline = CheckPipeline(
        Prober(timeout=config.probe_timeout),
        status_store,
        telemetry,
        config.region,
        stop_event=stop_event,
    )
    app = create_app(config, pipeline)
    server = CheckerServer(
        uvicorn.Config(
            app,
            host="0.0.0.0",
            port=config.port,
            log_config=None,
            timeout_graceful_shutdown=config.drain_timeout,
        ),
        stop_event,
    )

    logger.info("Starting checker in region %s on port %d", config.region, config.port)
    try:
        server.run()
    finally:
        logger.info("Shutting down checker...")
        app.state.executor.shutdown(wait=False)
        telemetry.close()
        status_store.close()

    if not server.started:
        logger.error("Failed to start listening on port %d", config.port)
        sys.exit(1)
    if app.state.abandoned_checks:
        logger.error("%d check(s) were still running when shutdown timed out", app.state.abandoned_checks)
        sys.exit(1)
