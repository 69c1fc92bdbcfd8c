"""Session storage facade over a pluggable CRUD strategy.

The session id travels in a cookie; the session data lives wherever the
strategy keeps it (database, disk, cache). A storage turns the request
`Cookie` header into a `Session` and a committed `Session` back into a
`Set-Cookie` header value.

Usage:
    storage = create_session_storage(MyStrategy(), cookie={"name": "sid", "secrets": ["s3cret"]})
    session = await storage.get_session(request.headers.get("cookie"))
    session.flash("message", "Saved")
    set_cookie = await storage.commit_session(session)
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from prometheus_client import Counter

from .cookies import Cookie, CookieLike, resolve_cookie
from .diagnostics import WarnOnce, warn_unsigned_cookie
from .sessions import Session, create_session

logger = logging.getLogger(__name__)

MET_SESSIONS_CREATED = Counter("session_hub_sessions_created_total", "Session records created")
MET_SESSIONS_UPDATED = Counter("session_hub_sessions_updated_total", "Session records updated")
MET_SESSIONS_DESTROYED = Counter("session_hub_sessions_destroyed_total", "Session records destroyed")

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class SessionIdStorageStrategy(Protocol):
    """CRUD operations a backend provides to `create_session_storage`.

    Ids are generated by the strategy in `create_data`. `expires` is the
    absolute expiry of the session cookie (or None); honouring it is up to
    the strategy.
    """

    async def create_data(self, data: Dict[str, Any], expires: Optional[datetime] = None) -> str:
        """Store a new record and return its freshly generated id."""
        ...

    async def read_data(self, id: str) -> Optional[Dict[str, Any]]:
        """Return the record for `id`, or None if there is none (or it expired)."""
        ...

    async def update_data(self, id: str, data: Dict[str, Any], expires: Optional[datetime] = None) -> None:
        """Replace the record for `id` with `data`."""
        ...

    async def delete_data(self, id: str) -> None:
        """Remove the record for `id`. Unknown ids, including "", are ignored."""
        ...


class SessionStorage(Protocol):
    """Interface shared by every session storage."""

    cookie: Cookie

    async def get_session(self, cookie_header: Optional[str] = None, **options: Any) -> Session:
        ...

    async def commit_session(self, session: Session, **options: Any) -> str:
        ...

    async def destroy_session(self, session: Session, **options: Any) -> str:
        ...


def expired_cookie_options(options: Dict[str, Any]) -> Dict[str, Any]:
    """Return serialize options that expire a cookie immediately."""
    out = dict(options)
    out["expires"] = EPOCH
    out["max_age"] = None
    return out


class StrategySessionStorage:
    """Session storage keeping the id in a cookie and the data in a strategy."""

    def __init__(self, strategy: SessionIdStorageStrategy, cookie: Cookie) -> None:
        self.strategy = strategy
        self.cookie = cookie

    async def get_session(self, cookie_header: Optional[str] = None, **options: Any) -> Session:
        """Return the session referenced by `cookie_header`, or an empty one."""
        id = self.cookie.parse(cookie_header, **options) if cookie_header else None
        if not id or not isinstance(id, str):
            return create_session()

        data = await self.strategy.read_data(id)
        if data is None:
            logger.debug("No stored data for session cookie %s; starting empty", self.cookie.name)
            return create_session()
        return create_session(data, id)

    async def commit_session(self, session: Session, **options: Any) -> str:
        """Persist `session` and return the `Set-Cookie` value carrying its id."""
        id, data = session.id, session.data
        expires = self.cookie.expires

        if id:
            await self.strategy.update_data(id, data, expires)
            MET_SESSIONS_UPDATED.inc()
        else:
            id = await self.strategy.create_data(data, expires)
            MET_SESSIONS_CREATED.inc()
            logger.debug("Created session record for cookie %s", self.cookie.name)

        return self.cookie.serialize(id, **options)

    async def destroy_session(self, session: Session, **options: Any) -> str:
        """Delete the stored record and return an already-expired `Set-Cookie` value."""
        await self.strategy.delete_data(session.id)
        MET_SESSIONS_DESTROYED.inc()
        return self.cookie.serialize("", **expired_cookie_options(options))


class SessionStorageFactory:
    """Builds session storages, sharing one warn-once diagnostics sink."""

    def __init__(self, diagnostics: Optional[WarnOnce] = None) -> None:
        self.diagnostics = diagnostics or WarnOnce()

    def prepare_cookie(self, cookie: CookieLike = None) -> Cookie:
        """Resolve `cookie` and warn once if it is not signed."""
        resolved = resolve_cookie(cookie)
        warn_unsigned_cookie(self.diagnostics, resolved)
        return resolved

    def create(self, strategy: SessionIdStorageStrategy, cookie: CookieLike = None) -> StrategySessionStorage:
        return StrategySessionStorage(strategy, self.prepare_cookie(cookie))


default_factory = SessionStorageFactory()


def create_session_storage(
    strategy: SessionIdStorageStrategy,
    cookie: CookieLike = None,
    *,
    factory: Optional[SessionStorageFactory] = None,
) -> StrategySessionStorage:
    """Create a session storage from a CRUD strategy.

    Low-level API: prefer an existing storage when one fits.
    """
    return (factory or default_factory).create(strategy, cookie)
