"""Warn-once diagnostics sink used when building session storages."""

import logging
import threading
from typing import Optional, Set

from prometheus_client import Counter

logger = logging.getLogger(__name__)

MET_UNSIGNED_COOKIE_WARNINGS = Counter(
    "session_hub_unsigned_cookie_warnings_total",
    "Unsigned session cookie warnings emitted",
)


class WarnOnce:
    """Emit each keyed warning at most once for the lifetime of this object.

    Safe to share between threads.
    """

    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self._log = log or logger
        self._seen: Set[str] = set()
        self._lock = threading.Lock()

    def warn(self, key: str, message: str) -> bool:
        """Log `message` unless `key` was already warned about. Returns True when logged."""
        with self._lock:
            if key in self._seen:
                return False
            self._seen.add(key)
        self._log.warning(message)
        return True

    def seen(self, key: str) -> bool:
        with self._lock:
            return key in self._seen


def warn_unsigned_cookie(diagnostics: WarnOnce, cookie) -> None:
    """Warn once per cookie name when a session cookie carries no secrets."""
    if cookie.is_signed:
        return
    logged = diagnostics.warn(
        cookie.name,
        f'The "{cookie.name}" cookie is not signed, but session cookies should be '
        "signed to prevent tampering on the client before they are sent back to "
        "the server. Configure `secrets` on the cookie to sign it.",
    )
    if logged:
        MET_UNSIGNED_COOKIE_WARNINGS.inc()
