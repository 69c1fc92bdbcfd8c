"""Session storage that keeps the whole session data in the cookie itself.

There is no server-side record, so sessions from this storage always have
an empty id. Sign the cookie: the client holds the data.
"""

import logging
from typing import Any, Optional

from .cookies import Cookie, CookieLike
from .sessions import Session, create_session
from .storage import SessionStorageFactory, default_factory, expired_cookie_options

logger = logging.getLogger(__name__)

# Browsers drop cookies larger than this.
MAX_COOKIE_SIZE = 4096


class CookieTooLargeError(RuntimeError):
    """Raised when a committed session would not fit in a browser cookie."""

    def __init__(self, length: int) -> None:
        super().__init__(f"Cookie length will exceed browser maximum. Length: {length}")
        self.length = length


class CookieSessionStorage:
    """Session storage serializing the whole session data into the cookie."""

    def __init__(self, cookie: Cookie) -> None:
        self.cookie = cookie

    async def get_session(self, cookie_header: Optional[str] = None, **options: Any) -> Session:
        data = self.cookie.parse(cookie_header, **options) if cookie_header else None
        if not isinstance(data, dict):
            return create_session()
        return create_session(data)

    async def commit_session(self, session: Session, **options: Any) -> str:
        serialized = self.cookie.serialize(session.data, **options)
        if len(serialized) > MAX_COOKIE_SIZE:
            logger.debug("Session cookie %s too large: %d bytes", self.cookie.name, len(serialized))
            raise CookieTooLargeError(len(serialized))
        return serialized

    async def destroy_session(self, session: Session, **options: Any) -> str:
        return self.cookie.serialize("", **expired_cookie_options(options))


def create_cookie_session_storage(
    cookie: CookieLike = None,
    *,
    factory: Optional[SessionStorageFactory] = None,
) -> CookieSessionStorage:
    """Create a session storage that stores all session data in the cookie."""
    return CookieSessionStorage((factory or default_factory).prepare_cookie(cookie))
