from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlmodel import SQLModel
import models.zone  # Ensure tables are known by SQLModel for table creation
import models.zone_file
import models.access_log
from db.session import engine
from contextlib import asynccontextmanager
from api.zone_routes import router as zone_router
from api.share_routes import router as share_router
from core.errors import LockerError, ZoneLocked
import logging
import os
from dotenv import load_dotenv

# Configure logging
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

# Load environment variables from .env file, if it exists
load_dotenv()

DEV_DOMAIN = os.getenv("DEV_DOMAIN", "http://localhost:5173")
PRODUCTION_DOMAIN = os.getenv("PRODUCTION_DOMAIN")

# Allowed origins: dev server, production domain if configured, local fallbacks
allowed_origins_list = [
    DEV_DOMAIN,
    PRODUCTION_DOMAIN,
    "http://localhost:3000",
    "http://127.0.0.1:5173",
]
allowed_origins_list = sorted(set(origin for origin in allowed_origins_list if origin))

print(f"🌐 CORS: Allowing origins: {allowed_origins_list}")


# When We Start, Create the DB Tables if they don't exist
@asynccontextmanager
async def lifespan(app: FastAPI):
    SQLModel.metadata.create_all(engine)
    yield


app = FastAPI(title="GeoVault Locker API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Every locker failure is reported as a short message; hashes and internal
# state never reach the client
@app.exception_handler(LockerError)
async def locker_error_handler(request: Request, exc: LockerError):
    headers = None
    if isinstance(exc, ZoneLocked):
        headers = {"Retry-After": str(exc.retry_after_seconds)}
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content=exc.payload(), headers=headers)


app.include_router(zone_router, prefix="/zones", tags=["Zones", "Geofence"])
app.include_router(share_router, prefix="/shared", tags=["Sharing"])
