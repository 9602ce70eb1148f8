import pytest

from app.patient_service.services.orchestrator.session_state import (
    InMemorySessionStore,
    SessionNotFoundError,
    SessionStatus,
)


def _store_with_session(ceiling=70):
    store = InMemorySessionStore(ceiling=ceiling)
    state = store.create(disease="Migraine", patient_name="Ana Silva")
    return store, state


def test_create_generates_unique_ids():
    store = InMemorySessionStore()

    first = store.create(disease="Asthma", patient_name="A")
    second = store.create(disease="Asthma", patient_name="B")

    assert first.session_id != second.session_id
    assert len(store) == 2


def test_create_adopts_supplied_id():
    store = InMemorySessionStore()

    state = store.create(disease="Gout", patient_name="Li Wei", session_id="abc")

    assert state.session_id == "abc"
    assert store.get("abc") is state


def test_new_session_starts_empty_and_active():
    _, state = _store_with_session()

    assert state.interactions == 0
    assert state.history == []
    assert state.status is SessionStatus.ACTIVE
    assert state.disease == "Migraine"
    assert state.patient_name == "Ana Silva"


def test_disease_and_name_are_read_only():
    _, state = _store_with_session()

    with pytest.raises(AttributeError):
        state.disease = "Something else"

    with pytest.raises(AttributeError):
        state.patient_name = "Someone else"


def test_get_unknown_returns_none():
    store = InMemorySessionStore()

    assert store.get("missing") is None


def test_append_and_record_fill_latest_turn():
    store, state = _store_with_session()

    store.append_doctor_turn(state.session_id, "Any fever?")
    store.record_patient_reply(state.session_id, "A little last night.")
    store.append_doctor_turn(state.session_id, "Any vomiting?")

    assert [t.doctor for t in state.history] == ["Any fever?", "Any vomiting?"]
    assert state.history[0].patient == "A little last night."
    assert state.history[1].patient == ""


def test_record_without_turn_raises():
    store, state = _store_with_session()

    with pytest.raises(ValueError):
        store.record_patient_reply(state.session_id, "Hello")


def test_record_empty_reply_raises():
    store, state = _store_with_session()
    store.append_doctor_turn(state.session_id, "Hi")

    with pytest.raises(ValueError):
        store.record_patient_reply(state.session_id, "")


def test_operations_on_unknown_session_raise():
    store = InMemorySessionStore()

    with pytest.raises(SessionNotFoundError):
        store.append_doctor_turn("nope", "Hello")

    with pytest.raises(SessionNotFoundError):
        store.increment_and_maybe_expire("nope")


def test_increment_below_ceiling_keeps_session():
    store, state = _store_with_session(ceiling=3)

    store.increment_and_maybe_expire(state.session_id)
    store.increment_and_maybe_expire(state.session_id)

    assert state.interactions == 2
    assert store.get(state.session_id) is state


def test_session_expires_at_ceiling():
    store, state = _store_with_session(ceiling=2)

    store.increment_and_maybe_expire(state.session_id)
    returned = store.increment_and_maybe_expire(state.session_id)

    assert returned is state
    assert state.interactions == 2
    assert state.status is SessionStatus.EXPIRED
    assert store.get(state.session_id) is None
    assert state.session_id not in store
    assert len(store) == 0


def test_default_ceiling_is_seventy():
    store, state = _store_with_session()

    for _ in range(69):
        store.increment_and_maybe_expire(state.session_id)
    assert store.get(state.session_id) is state

    store.increment_and_maybe_expire(state.session_id)
    assert store.get(state.session_id) is None


def test_lock_is_stable_per_session():
    store = InMemorySessionStore()

    assert store.lock("a") is store.lock("a")
    assert store.lock("a") is not store.lock("b")


def test_lock_survives_session_expiry():
    store, state = _store_with_session(ceiling=1)
    lock = store.lock(state.session_id)

    store.increment_and_maybe_expire(state.session_id)

    assert store.get(state.session_id) is None
    assert store.lock(state.session_id) is lock


def test_invalid_ceiling_rejected():
    with pytest.raises(ValueError):
        InMemorySessionStore(ceiling=0)
