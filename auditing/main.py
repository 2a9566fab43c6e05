"""Main FastAPI application entry point."""
from contextlib import asynccontextmanager

from fastapi import FastAPI

from auditing.database import engine, Base
from auditing.api.routes import router
from auditing.context import RequestContextMiddleware
from auditing.settings import get_settings
from auditing.structured_logging import get_logger, setup_logging
# Import models to register them with SQLAlchemy Base
from auditing.models.audit import Audit  # noqa: F401

settings = get_settings()
setup_logging(level=settings.log_level, json_output=settings.log_json)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create database tables on startup."""
    Base.metadata.create_all(bind=engine)
    logger.info("auditing_service_started", enabled=settings.enabled, driver=settings.driver)
    yield


app = FastAPI(
    title="Record Auditing",
    description="Audit trails for tracked records, with point-in-time state transitions.",
    version="0.1.0",
    lifespan=lifespan
)

# Exposes the current request to the actor and context resolvers
app.add_middleware(RequestContextMiddleware)

app.include_router(router, prefix="/api", tags=["Audits"])


@app.get("/health")
def health_check():
    return {"status": "healthy", "service": "Record Auditing"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
