from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest
import logging

from .memory_storage import create_memory_session_storage
from .settings import create_cookie_from_env

# Metrics
MET_FLASH_MESSAGES = Counter("session_hub_flash_messages_total", "Flash messages set through the dev API")

app = FastAPI(title="Session Hub - Dev Skeleton")
"""Development app embedding a memory-backed session storage."""

logger = logging.getLogger(__name__)

# Initialize session storage
session_storage = create_memory_session_storage(create_cookie_from_env())


class SessionValue(BaseModel):
    name: str
    value: Any = None


async def _load(request: Request):
    return await session_storage.get_session(request.headers.get("cookie"))


def _respond(payload: dict, set_cookie: str) -> JSONResponse:
    return JSONResponse(payload, headers={"set-cookie": set_cookie})


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/session")
async def read_session(request: Request):
    """Return the session data, consuming the `message` flash if one is set."""
    session = await _load(request)
    message = session.get("message")
    set_cookie = await session_storage.commit_session(session)
    return _respond({"id": session.id or None, "data": session.data, "message": message}, set_cookie)


@app.post("/api/session/values")
async def set_value(item: SessionValue, request: Request):
    session = await _load(request)
    session.set(item.name, item.value)
    set_cookie = await session_storage.commit_session(session)
    return _respond({"data": session.data}, set_cookie)


@app.delete("/api/session/values/{name}")
async def unset_value(name: str, request: Request):
    session = await _load(request)
    session.unset(name)
    set_cookie = await session_storage.commit_session(session)
    return _respond({"data": session.data}, set_cookie)


@app.post("/api/session/flash")
async def flash_value(item: SessionValue, request: Request):
    """Set a flash value, shown once by the next `GET /api/session`."""
    session = await _load(request)
    session.flash(item.name, item.value)
    MET_FLASH_MESSAGES.inc()
    set_cookie = await session_storage.commit_session(session)
    return _respond({"data": session.data}, set_cookie)


@app.post("/api/session/destroy")
async def destroy(request: Request):
    session = await _load(request)
    set_cookie = await session_storage.destroy_session(session)
    logger.info("Destroyed session %s", session.id or "<new>")
    return _respond({"status": "destroyed"}, set_cookie)


@app.get('/metrics')
async def metrics():
    """Expose Prometheus metrics."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
