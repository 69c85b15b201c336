import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from crm.api.routes import router
from crm.core.config import settings
from crm.core.logging import setup_logging
from crm.db.database import engine, init_db
from crm.services import field_registry
from crm.services.schema_sync import check_schema

setup_logging(
    level="DEBUG" if settings.DEBUG else settings.LOG_LEVEL,
    json_format=settings.LOG_JSON,
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    check_schema(engine)
    if settings.SEED_DEFAULT_FIELDS:
        field_registry.seed_default_fields()
    logger.info("%s ready", settings.APP_NAME)
    yield

# Initialize the FastAPI application
app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

# in dev we allow ALL origins.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api")

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
