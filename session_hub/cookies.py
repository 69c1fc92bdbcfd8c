"""Cookie collaborator used by the session storages.

A `Cookie` knows its name and attributes, can pull its own value out of a
request `Cookie` header and can render a `Set-Cookie` header value for a new
value. Values are JSON encoded, then URL-safe base64 encoded, and signed when
secrets are configured.
"""

import json
import logging
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from http.cookies import SimpleCookie
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Union

from starlette.requests import cookie_parser

from .signing import SignatureError, b64url_decode, b64url_encode, sign, unsign

logger = logging.getLogger(__name__)

DEFAULT_COOKIE_NAME = "__session"

_SAMESITE_VALUES = ("lax", "strict", "none")


@dataclass(frozen=True)
class CookieOptions:
    """Attributes rendered into `Set-Cookie` plus the signing secrets."""
    path: Optional[str] = "/"
    domain: Optional[str] = None
    max_age: Optional[int] = None
    expires: Optional[datetime] = None
    secure: bool = False
    httponly: bool = False
    samesite: Optional[str] = "lax"
    secrets: Sequence[str] = field(default_factory=tuple)


# Attributes a caller may pass to `Cookie.serialize`.
SERIALIZE_OPTIONS = tuple(f.name for f in fields(CookieOptions) if f.name != "secrets")


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def encode_cookie_value(value: Any, secrets: Sequence[str] = ()) -> str:
    encoded = b64url_encode(json.dumps(value, separators=(",", ":")).encode("utf-8"))
    if secrets:
        encoded = sign(encoded, secrets[0])
    return encoded


def decode_cookie_value(raw: str, secrets: Sequence[str] = ()) -> Any:
    """Decode a cookie value, returning None when it cannot be trusted or read."""
    if secrets:
        try:
            raw = unsign(raw, secrets)
        except SignatureError as e:
            logger.debug("Rejected cookie value: %s", e)
            return None
    try:
        return json.loads(b64url_decode(raw).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as e:
        logger.debug("Undecodable cookie value: %s", e)
        return None


class Cookie:
    """A named HTTP cookie with default attributes and optional signing."""

    def __init__(self, name: str, options: Optional[CookieOptions] = None) -> None:
        if not name:
            raise ValueError("cookie name must not be empty")
        self.name = name
        self.options = options or CookieOptions()
        if self.options.samesite and self.options.samesite.lower() not in _SAMESITE_VALUES:
            raise ValueError(f"invalid samesite value: {self.options.samesite!r}")

    def __repr__(self) -> str:
        return f"Cookie(name={self.name!r}, signed={self.is_signed})"

    @property
    def is_signed(self) -> bool:
        return len(self.options.secrets) > 0

    @property
    def expires(self) -> Optional[datetime]:
        """Absolute expiry implied by the configured `max_age` or `expires`."""
        if self.options.max_age is not None:
            return datetime.now(timezone.utc) + timedelta(seconds=self.options.max_age)
        if self.options.expires is not None:
            return _utc(self.options.expires)
        return None

    def parse(self, cookie_header: Optional[str], decode: Optional[Callable[[str], str]] = None) -> Any:
        """Return this cookie's decoded value from a `Cookie` request header.

        Returns None when the header does not carry the cookie or its value
        cannot be decoded, and "" when the cookie is present but empty.
        """
        if not cookie_header:
            return None
        cookies = cookie_parser(cookie_header)
        if self.name not in cookies:
            return None
        raw = cookies[self.name]
        if decode is not None:
            raw = decode(raw)
        if raw == "":
            return ""
        return decode_cookie_value(raw, self.options.secrets)

    def serialize(self, value: Any, **options: Any) -> str:
        """Render a `Set-Cookie` header value carrying `value`.

        Keyword options override this cookie's attributes for this call only;
        passing None for an attribute drops it.
        """
        unknown = set(options) - set(SERIALIZE_OPTIONS)
        if unknown:
            raise TypeError(f"unknown cookie option(s): {', '.join(sorted(unknown))}")
        attrs = {name: getattr(self.options, name) for name in SERIALIZE_OPTIONS}
        attrs.update(options)

        encoded = "" if value == "" else encode_cookie_value(value, self.options.secrets)
        jar: SimpleCookie = SimpleCookie()
        jar[self.name] = encoded
        morsel = jar[self.name]
        if attrs["path"] is not None:
            morsel["path"] = attrs["path"]
        if attrs["domain"] is not None:
            morsel["domain"] = attrs["domain"]
        if attrs["max_age"] is not None:
            morsel["max-age"] = int(attrs["max_age"])
        if attrs["expires"] is not None:
            morsel["expires"] = format_datetime(_utc(attrs["expires"]), usegmt=True)
        if attrs["secure"]:
            morsel["secure"] = True
        if attrs["httponly"]:
            morsel["httponly"] = True
        if attrs["samesite"]:
            samesite = str(attrs["samesite"]).lower()
            if samesite not in _SAMESITE_VALUES:
                raise ValueError(f"invalid samesite value: {attrs['samesite']!r}")
            morsel["samesite"] = samesite.capitalize()
        return jar.output(header="").strip()


CookieLike = Union[Cookie, CookieOptions, Mapping[str, Any], None]


def is_cookie(obj: Any) -> bool:
    """Return True if `obj` behaves like a `Cookie`."""
    return (
        obj is not None
        and isinstance(getattr(obj, "name", None), str)
        and isinstance(getattr(obj, "is_signed", None), bool)
        and callable(getattr(obj, "parse", None))
        and callable(getattr(obj, "serialize", None))
    )


def create_cookie(name: str = DEFAULT_COOKIE_NAME, options: Optional[CookieOptions] = None, **overrides: Any) -> Cookie:
    """Create a `Cookie`, applying keyword `overrides` on top of `options`."""
    options = options or CookieOptions()
    if overrides:
        if "secrets" in overrides:
            overrides["secrets"] = tuple(overrides["secrets"])
        options = replace(options, **overrides)
    return Cookie(name, options)


def resolve_cookie(cookie: CookieLike) -> Cookie:
    """Normalize a cookie argument into a `Cookie`.

    Accepts an existing cookie, a `CookieOptions`, a mapping of options that
    may carry a `name` key, or None for the default session cookie.
    """
    if is_cookie(cookie):
        return cookie  # type: ignore[return-value]
    if cookie is None:
        return create_cookie(DEFAULT_COOKIE_NAME)
    if isinstance(cookie, CookieOptions):
        return Cookie(DEFAULT_COOKIE_NAME, cookie)
    kw: Dict[str, Any] = dict(cookie)
    name = kw.pop("name", None) or DEFAULT_COOKIE_NAME
    return create_cookie(name, **kw)
