from epc.identity.store import SESSION_STORE_KEY, MemorySessionStore, SqlSessionStore, create_store
from epc.identity.tokens import IdentifierProvider


def test_sql_store_round_trips_tables(tmp_path):
    store = SqlSessionStore(f"sqlite:///{tmp_path / 'state.db'}")

    assert store.load("missing") is None

    store.save("k", {":id": "cd" * 16, ":sg": 2, "foo": 1})
    store.save("k", {":id": "cd" * 16, ":sg": 3, "foo": 1, "bar": 2})

    assert store.load("k") == {":id": "cd" * 16, ":sg": 3, "foo": 1, "bar": 2}


def test_session_survives_provider_restart(tmp_path):
    url = f"sqlite:///{tmp_path / 'tokens.db'}"
    first = IdentifierProvider(SqlSessionStore(url))
    session = first.session_id()
    first.activity_id("login", "session")

    second = IdentifierProvider(SqlSessionStore(url))

    assert second.session_id() == session
    assert second.activity_id("login", "session") == f"{session}0001"
    assert second.activity_id("logout", "session") == f"{session}0002"


def test_memory_store_hands_out_copies():
    store = MemorySessionStore()
    table = {":id": "ef" * 16, ":sg": 1}
    store.save(SESSION_STORE_KEY, table)

    table[":sg"] = 99
    loaded = store.load(SESSION_STORE_KEY)
    loaded["extra"] = 1

    assert store.load(SESSION_STORE_KEY) == {":id": "ef" * 16, ":sg": 1}


def test_create_store_picks_backend(tmp_path):
    assert isinstance(create_store(None), MemorySessionStore)
    assert isinstance(create_store(f"sqlite:///{tmp_path / 'x.db'}"), SqlSessionStore)


def test_busy_session_survives_restart_within_idle_window(tmp_path):
    url = f"sqlite:///{tmp_path / 'busy.db'}"
    clock = {"now": 1_000.0}
    first = IdentifierProvider(SqlSessionStore(url), session_timeout=60, clock=lambda: clock["now"])
    session = first.session_id()
    for _ in range(20):
        clock["now"] += 50
        assert first.session_id() == session

    clock["now"] += 10
    second = IdentifierProvider(SqlSessionStore(url), session_timeout=60, clock=lambda: clock["now"])

    assert second.session_id() == session


def test_idle_session_expires_across_restart(tmp_path):
    url = f"sqlite:///{tmp_path / 'idle.db'}"
    clock = {"now": 1_000.0}
    first = IdentifierProvider(SqlSessionStore(url), session_timeout=60, clock=lambda: clock["now"])
    session = first.session_id()

    clock["now"] += 120
    second = IdentifierProvider(SqlSessionStore(url), session_timeout=60, clock=lambda: clock["now"])

    assert second.session_id() != session
