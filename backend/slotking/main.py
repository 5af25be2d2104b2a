"""
FastAPI app entrypoint.

Meetings, votes, participants and suggestions under /api. Real-time transports subscribe to
slotking.services.events; this process only logs events.
"""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env from backend/ before any app code
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from slotking.api.routes import identity, meetings, participants
from slotking.config import settings
from slotking.db.session import init_db
from slotking.services import events

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def log_event(event_type: str, message: dict) -> None:
    logger.info("event %s meeting=%s", event_type, message.get("meeting_id"))


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.create_tables_on_startup:
        init_db()
        logger.info("Tables created (create_tables_on_startup)")
    events.subscribe(log_event)
    logger.info("SlotKing backend ready")
    yield
    events.unsubscribe(log_event)


app = FastAPI(title="SlotKing", version="0.1.0", lifespan=lifespan)

# CORS: dev origins + optional CORS_ORIGINS env (comma-separated) for the deployed frontend
_cors_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_cors_origins.extend(settings.cors_origin_list())
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(meetings.router, prefix="/api", tags=["meetings"])
app.include_router(participants.router, prefix="/api", tags=["participants"])
app.include_router(identity.router, prefix="/api", tags=["identity"])


@app.get("/", include_in_schema=False)
def root():
    """Root: point to API docs and health."""
    return {"message": "SlotKing API", "docs": "/docs", "health": "/health"}


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
