from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from session_hub.cookies import create_cookie
from session_hub.diagnostics import WarnOnce
from session_hub.sessions import create_session
from session_hub.storage import SessionStorageFactory, create_session_storage


def _pair(set_cookie: str) -> str:
    return set_cookie.split(";", 1)[0]


@pytest.fixture
def strategy():
    """Create a mock CRUD strategy backed by a dict."""
    store = {}
    counter = {"n": 0}

    async def create_data(data, expires=None):
        counter["n"] += 1
        id = f"id-{counter['n']}"
        store[id] = dict(data)
        return id

    async def read_data(id):
        data = store.get(id)
        return dict(data) if data is not None else None

    async def update_data(id, data, expires=None):
        store[id] = dict(data)

    async def delete_data(id):
        store.pop(id, None)

    s = AsyncMock()
    s.create_data = AsyncMock(side_effect=create_data)
    s.read_data = AsyncMock(side_effect=read_data)
    s.update_data = AsyncMock(side_effect=update_data)
    s.delete_data = AsyncMock(side_effect=delete_data)
    s.store = store
    return s


@pytest.fixture
def factory():
    return SessionStorageFactory(WarnOnce())


@pytest.fixture
def storage(strategy, factory):
    return create_session_storage(strategy, {"name": "sid", "secrets": ["s3cret"]}, factory=factory)


@pytest.mark.asyncio
async def test_get_session_without_header(storage, strategy):
    session = await storage.get_session()
    assert session.id == ""
    assert session.data == {}
    strategy.read_data.assert_not_called()


@pytest.mark.asyncio
async def test_get_session_header_without_cookie(storage, strategy):
    session = await storage.get_session("theme=dark")
    assert session.id == ""
    assert session.data == {}
    strategy.read_data.assert_not_called()


@pytest.mark.asyncio
async def test_get_session_with_bad_signature(storage, strategy):
    forged = create_cookie("sid", secrets=["wrong"]).serialize("id-1")
    session = await storage.get_session(_pair(forged))
    assert session.id == ""
    strategy.read_data.assert_not_called()


@pytest.mark.asyncio
async def test_commit_new_session_creates_record(storage, strategy):
    session = await storage.get_session()
    session.set("theme", "dark")
    header = await storage.commit_session(session)

    strategy.create_data.assert_awaited_once()
    strategy.update_data.assert_not_called()
    assert storage.cookie.parse(_pair(header)) == "id-1"
    assert strategy.store["id-1"] == {"theme": "dark"}


@pytest.mark.asyncio
async def test_round_trip_restores_values(storage, strategy):
    session = await storage.get_session()
    session.set("theme", "dark")
    session.flash("error", "bad")
    header = await storage.commit_session(session)

    again = await storage.get_session(_pair(header))
    assert again.id == "id-1"
    assert again.get("theme") == "dark"
    assert again.get("error") == "bad"
    assert again.get("error") is None
    strategy.read_data.assert_awaited_once_with("id-1")


@pytest.mark.asyncio
async def test_commit_existing_session_updates_record(storage, strategy):
    strategy.store["abc"] = {"count": 1}
    session = create_session({"count": 1}, id="abc")
    session.set("count", 2)
    header = await storage.commit_session(session)

    strategy.update_data.assert_awaited_once()
    args = strategy.update_data.await_args.args
    assert args[0] == "abc"
    assert args[1] == {"count": 2}
    strategy.create_data.assert_not_called()
    assert storage.cookie.parse(_pair(header)) == "abc"


@pytest.mark.asyncio
async def test_consumed_flash_is_not_persisted(storage, strategy):
    strategy.store["abc"] = {"__flash_error__": "bad"}
    header = storage.cookie.serialize("abc")
    session = await storage.get_session(_pair(header))
    assert session.get("error") == "bad"
    await storage.commit_session(session)
    assert strategy.store["abc"] == {}


@pytest.mark.asyncio
async def test_unknown_id_gives_empty_session(storage, strategy):
    header = storage.cookie.serialize("ghost")
    session = await storage.get_session(_pair(header))
    strategy.read_data.assert_awaited_once_with("ghost")
    assert session.data == {}
    assert session.id == ""


@pytest.mark.asyncio
async def test_expiry_comes_from_cookie_config(strategy, factory):
    storage = create_session_storage(strategy, {"name": "sid", "max_age": 60, "secrets": ["k"]}, factory=factory)
    session = create_session()
    header = await storage.commit_session(session, max_age=5)

    expires = strategy.create_data.await_args.args[1]
    expected = datetime.now(timezone.utc) + timedelta(seconds=60)
    assert abs((expires - expected).total_seconds()) < 5
    assert "Max-Age=5" in header


@pytest.mark.asyncio
async def test_update_expiry_comes_from_cookie_config(strategy, factory):
    storage = create_session_storage(strategy, {"name": "sid", "max_age": 60, "secrets": ["k"]}, factory=factory)
    strategy.store["abc"] = {"a": 1}
    session = create_session({"a": 1}, id="abc")
    await storage.commit_session(session, max_age=5, expires=datetime(2099, 1, 1))

    strategy.create_data.assert_not_called()
    expires = strategy.update_data.await_args.args[2]
    expected = datetime.now(timezone.utc) + timedelta(seconds=60)
    assert abs((expires - expected).total_seconds()) < 5


@pytest.mark.asyncio
async def test_naive_configured_expires_is_forwarded_as_utc(strategy, factory):
    storage = create_session_storage(strategy, {"name": "sid", "expires": datetime(2099, 1, 1), "secrets": ["k"]}, factory=factory)
    await storage.commit_session(create_session())
    expires = strategy.create_data.await_args.args[1]
    assert expires == datetime(2099, 1, 1, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_expiry_none_without_lifetime(storage, strategy):
    await storage.commit_session(create_session())
    assert strategy.create_data.await_args.args[1] is None


@pytest.mark.asyncio
async def test_destroy_session_expires_cookie(storage, strategy):
    strategy.store["abc"] = {"a": 1}
    session = create_session({"a": 1}, id="abc")
    header = await storage.destroy_session(session, expires=datetime(2099, 1, 1), max_age=3600)

    strategy.delete_data.assert_awaited_once_with("abc")
    assert "abc" not in strategy.store
    assert "expires=Thu, 01 Jan 1970 00:00:00 GMT" in header
    assert "Max-Age" not in header
    assert storage.cookie.parse(_pair(header)) == ""


@pytest.mark.asyncio
async def test_destroy_new_session_still_deletes(storage, strategy):
    await storage.destroy_session(create_session())
    strategy.delete_data.assert_awaited_once_with("")


@pytest.mark.asyncio
async def test_strategy_errors_propagate(storage, strategy):
    strategy.create_data.side_effect = ConnectionError("backend down")
    with pytest.raises(ConnectionError):
        await storage.commit_session(create_session())

    strategy.read_data.side_effect = TimeoutError("slow")
    header = storage.cookie.serialize("abc")
    with pytest.raises(TimeoutError):
        await storage.get_session(_pair(header))

    strategy.delete_data.side_effect = RuntimeError("nope")
    with pytest.raises(RuntimeError):
        await storage.destroy_session(create_session({}, id="abc"))


def test_unsigned_cookie_warns_once_per_name(strategy, caplog):
    factory = SessionStorageFactory(WarnOnce())
    with caplog.at_level("WARNING"):
        create_session_storage(strategy, {"name": "plain"}, factory=factory)
        create_session_storage(strategy, {"name": "plain"}, factory=factory)
        create_session_storage(strategy, {"name": "other"}, factory=factory)
        create_session_storage(strategy, {"name": "signed", "secrets": ["k"]}, factory=factory)

    messages = [r.getMessage() for r in caplog.records if "is not signed" in r.getMessage()]
    assert len(messages) == 2
    assert any('"plain"' in m for m in messages)
    assert any('"other"' in m for m in messages)


def test_default_cookie_name(strategy, factory):
    storage = create_session_storage(strategy, factory=factory)
    assert storage.cookie.name == "__session"
    assert factory.diagnostics.seen("__session")
