from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from .config import Settings
from .exceptions import WorkflowError
from .logging_config import get_logger

logger = get_logger(__name__)


def _create_minimal_app(settings: Settings | None = None) -> FastAPI:
    """Create the FastAPI app object without running side-effectful wiring.
    Tests can import and call this to create fresh apps.
    """
    app = FastAPI(title="tokenflow")
    app.state.settings = settings or Settings()
    # filled in by composition.wire_app at startup; deps fall back when None
    app.state.cache_client = None
    app.state.notification_sender = None
    return app


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create a FastAPI application with routers, middleware and error mapping.

    Clients and the database are set up by ``composition.wire_app``; this
    function intentionally does not touch them.
    """
    app = _create_minimal_app(settings)

    from .metrics import metrics_response
    from .middleware.metrics_middleware import MetricsMiddleware
    from .routers import approvals, health, recovery

    app.include_router(health.router)
    app.include_router(approvals.router)
    app.include_router(recovery.router)

    app.add_middleware(MetricsMiddleware)

    @app.get("/metrics")
    async def _metrics():
        data, content_type = metrics_response()
        return Response(content=data, media_type=content_type)

    @app.exception_handler(WorkflowError)
    async def _workflow_error_handler(request: Request, exc: WorkflowError):
        if exc.status_code >= 500:
            logger.error("workflow_error", path=request.url.path, code=exc.code)
        else:
            logger.info("workflow_rejected", path=request.url.path, code=exc.code)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_dict()})

    return app


__all__ = ["create_app", "_create_minimal_app"]
