# configure logging early so passlib backend probing is quiet before anything hashes
from .logging_config import get_logger

# Import composition but do NOT call anything that creates engines at import
# time; on_startup handles DB initialization so tests can set DATABASE_URL first.
from . import composition
from .wiring import create_app

logger = get_logger(__name__)

app = create_app()
_wired: composition.WireResult | None = None


@app.on_event("startup")
async def on_startup():
    global _wired
    _wired = await composition.wire_app(app)


@app.on_event("shutdown")
async def on_shutdown():
    if _wired is not None:
        await _wired.teardown()
    logger.info("shutdown complete")


if __name__ == "__main__":
    import uvicorn

    settings = app.state.settings
    uvicorn.run("tokenflow.main:app", host=settings.server_host, port=settings.server_port)
