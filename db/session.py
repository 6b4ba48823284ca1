import logging
import os

from dotenv import load_dotenv
from sqlmodel import Session, create_engine

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

# Connects app to the zone database
#
# Resolution order:
#   1. DATABASE_URL, used verbatim
#   2. DB_NAME/DB_USER/DB_PASSWORD + INSTANCE_CONNECTION_NAME (Cloud SQL socket)
#   3. DB_HOST/DB_PORT/DB_NAME/DB_USER/DB_PASSWORD (PostgreSQL over TCP)
#   4. local SQLite file for development

DATABASE_URL = os.getenv("DATABASE_URL")
DB_HOST = os.getenv("DB_HOST")
DB_PORT = os.getenv("DB_PORT", "5432")  # Default PostgreSQL port
DB_NAME = os.getenv("DB_NAME")
DB_USER = os.getenv("DB_USER")
DB_PASSWORD = os.getenv("DB_PASSWORD")
INSTANCE_CONNECTION_NAME = os.getenv("INSTANCE_CONNECTION_NAME")  # For Cloud SQL Proxy

required_vars_for_socket = ["DB_NAME", "DB_USER", "DB_PASSWORD", "INSTANCE_CONNECTION_NAME"]
required_vars_for_tcp = ["DB_HOST", "DB_NAME", "DB_USER", "DB_PASSWORD"]


def _build_database_url() -> str:
    if DATABASE_URL:
        return DATABASE_URL

    if INSTANCE_CONNECTION_NAME:
        missing_vars = [var for var in required_vars_for_socket if not os.getenv(var)]
        if missing_vars:
            raise ValueError(f"Missing required environment variables for Cloud SQL (socket): {', '.join(missing_vars)}")
        return f"postgresql+psycopg2://{DB_USER}:{DB_PASSWORD}@/{DB_NAME}?host=/cloudsql/{INSTANCE_CONNECTION_NAME}"

    if DB_HOST:
        missing_vars = [var for var in required_vars_for_tcp if not os.getenv(var)]
        if missing_vars:
            raise ValueError(f"Missing required environment variables for TCP: {', '.join(missing_vars)}")
        return f"postgresql+psycopg2://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"

    logger.warning("No database configured; falling back to local SQLite file geovault.db")
    return "sqlite:///geovault.db"


def _engine_kwargs(url: str) -> dict:
    # SQLite connections are shared across FastAPI's threadpool workers
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


_url = _build_database_url()

# Note: echo=True will log all SQL statements, keep False in production
engine = create_engine(_url, echo=False, **_engine_kwargs(_url))


# Getter for a session, used as a FastAPI dependency
def get_session():
    with Session(engine) as session:
        yield session
