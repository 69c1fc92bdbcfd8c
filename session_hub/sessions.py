"""Per-request session records with read-once flash values.

A `Session` holds one backing dict. Ordinary values live under their own
name; flash values live under ``__flash_<name>__`` and are removed the first
time `get` returns them. Application names are expected not to use that
pattern themselves; a collision between the two namespaces is undefined.
"""

from typing import Any, Dict, Mapping, Optional

# Ordinary values: name -> value. Flash values share the same dict under
# transformed keys.
SessionData = Dict[str, Any]


def _flash_key(name: str) -> str:
    return f"__flash_{name}__"


class Session:
    """Session data for a single request.

    Created by a session storage's `get_session`; application code mutates it
    and hands it back to `commit_session` or `destroy_session`.
    """

    __slots__ = ("_id", "_map")

    def __init__(self, initial_data: Optional[Mapping[str, Any]] = None, id: str = "") -> None:
        self._id = id
        self._map: SessionData = dict(initial_data or {})

    def __repr__(self) -> str:
        return f"Session(id={self._id!r}, keys={sorted(self._map)!r})"

    @property
    def id(self) -> str:
        """Identifier of the stored record, "" when not persisted yet."""
        return self._id

    @property
    def data(self) -> SessionData:
        """Snapshot of all entries, flash entries under their stored keys."""
        return dict(self._map)

    def has(self, name: str) -> bool:
        return name in self._map or _flash_key(name) in self._map

    def get(self, name: str) -> Any:
        """Return the value for `name`, consuming it if it is a flash value."""
        if name in self._map:
            return self._map[name]
        return self._map.pop(_flash_key(name), None)

    def set(self, name: str, value: Any) -> None:
        self._map[name] = value

    def flash(self, name: str, value: Any) -> None:
        """Set a value that is only available until the next `get`."""
        self._map[_flash_key(name)] = value

    def unset(self, name: str) -> None:
        self._map.pop(name, None)


def create_session(initial_data: Optional[Mapping[str, Any]] = None, id: str = "") -> Session:
    """Create a new `Session`.

    Usually called by a session storage rather than by application code.
    """
    return Session(initial_data, id)


def is_session(obj: Any) -> bool:
    """Return True if `obj` looks like a `Session`."""
    return (
        obj is not None
        and isinstance(getattr(obj, "id", None), str)
        and getattr(obj, "data", None) is not None
        and all(callable(getattr(obj, m, None)) for m in ("has", "get", "set", "flash", "unset"))
    )
