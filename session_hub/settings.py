"""Environment-driven session cookie configuration for the dev app.

Recognised variables:
- `SESSION_COOKIE_NAME`: cookie name (default `__session`).
- `SESSION_SECRETS`: comma-separated secrets; the first one signs.
- `SESSION_MAX_AGE`: cookie lifetime in seconds.
- `SESSION_SECURE`: `1`, `true` or `yes` to mark the cookie `Secure`.
"""

import os

from .cookies import DEFAULT_COOKIE_NAME, Cookie, CookieOptions, create_cookie


class SettingsError(RuntimeError):
    """Raised for malformed session settings in the environment."""


def _flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes")


def cookie_options_from_env() -> CookieOptions:
    secrets = tuple(s.strip() for s in os.getenv("SESSION_SECRETS", "").split(",") if s.strip())

    max_age = None
    raw_max_age = os.getenv("SESSION_MAX_AGE")
    if raw_max_age:
        try:
            max_age = int(raw_max_age)
        except ValueError as e:
            raise SettingsError("SESSION_MAX_AGE must be an integer number of seconds") from e
        if max_age < 0:
            raise SettingsError("SESSION_MAX_AGE must not be negative")

    return CookieOptions(
        max_age=max_age,
        secure=_flag(os.getenv("SESSION_SECURE", "")),
        httponly=True,
        secrets=secrets,
    )


def create_cookie_from_env() -> Cookie:
    """Return the session cookie configured by the environment."""
    name = os.getenv("SESSION_COOKIE_NAME") or DEFAULT_COOKIE_NAME
    return create_cookie(name, cookie_options_from_env())
