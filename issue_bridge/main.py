"""
FastAPI surface for the issue tracker bridge.

The note-taking client calls these routes on localhost; every route is a
one-shot call into the process-wide IssueOrchestrator.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from issue_bridge.core.container import container
from issue_bridge.core.logging import configure_logging, get_logger
from issue_bridge.routers import cache, issues

settings = container.settings()
configure_logging(settings)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    logger.info("Starting issue bridge",
                accounts=[a.alias for a in container.accounts()],
                cache_time=settings.cache_time)
    yield
    await container.exchange().aclose()
    logger.info("Issue bridge shutdown complete")


app = FastAPI(
    title="Issue Bridge",
    version="1.0.0",
    description="Throttled, retried, multi-account access to an issue tracker REST API",
    lifespan=lifespan,
)


class CatchAllExceptionsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Unhandled exception: {type(e).__name__}: {str(e)}", exc_info=True)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "success": False,
                    "error": f"{type(e).__name__}: {str(e)}",
                    "detail": "Internal server error"
                }
            )


app.add_middleware(CatchAllExceptionsMiddleware)

app.include_router(issues.router)
app.include_router(cache.router)


@app.get("/health")
async def health():
    """Liveness plus queue and cache counters."""
    return {"status": "ok", **container.orchestrator().stats()}


def run() -> None:
    """Console entry point."""
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
