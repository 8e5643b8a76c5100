# FastAPI application entrypoint - initializes app, mounts routers

from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session

from insightful.api import ping, auth, upload, jobs
from insightful.core.config import settings
from insightful.core.database import get_db, create_tables
from insightful.core.storage import StorageClient, get_storage

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_tables()
    if settings.s3_auto_create_bucket:
        get_storage().ensure_bucket_exists()
    logger.info("Insightful API started")
    yield


app = FastAPI(title="Insightful", version="1.0.0", lifespan=lifespan)

if settings.cors_origin_list():
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(ping.router, prefix="/api", tags=["health"])
app.include_router(auth.router, prefix="/api", tags=["auth"])
app.include_router(upload.router, prefix="/api", tags=["uploads"])
app.include_router(jobs.router, prefix="/api", tags=["jobs"])


@app.get("/")
def read_root():
    return {"system": "Insightful", "status": "online", "version": "1.0.0"}


@app.get("/health")
def health_check(
    db: Session = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
):
    """
    Check that the database and object storage are reachable.
    """
    services = {}

    try:
        db.execute(text("SELECT 1"))
        services["database"] = "ok"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        services["database"] = f"error: {e}"

    try:
        storage.check()
        services["storage"] = "ok"
    except Exception as e:
        logger.error(f"Storage health check failed: {e}")
        services["storage"] = f"error: {e}"

    status = "healthy" if all(v == "ok" for v in services.values()) else "degraded"

    return {
        "status": status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": services,
    }
