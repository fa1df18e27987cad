"""Unit tests for auth/store.py -- user queries and the session slot.

Covers:
- create_user() creates an empty session row alongside the user
- duplicate email raises IntegrityError; email lookup is case-sensitive
- open_session() overwrites unconditionally
- rotate_session() / close_session() only act when the slot holds the expected token
- delete_user() removes the session with the user
"""

import pytest
from sqlalchemy.exc import IntegrityError

from auth.models import Role, User
from auth.store import UserStore


@pytest.fixture
def user_id(store: UserStore) -> int:
    return store.create_user(User(email="a@x.com", password_hash="$2b$04$hash", role=Role.USER))


class TestUsers:
    def test_create_and_lookup(self, store: UserStore, user_id: int) -> None:
        user = store.get_by_email("a@x.com")
        assert user is not None
        assert user.id == user_id
        assert user.role is Role.USER
        assert user.created_at
        assert store.get_by_id(user_id) == user

    def test_new_user_has_empty_session(self, store: UserStore, user_id: int) -> None:
        session = store.get_session(user_id)
        assert session is not None
        assert session.refresh_token is None

    def test_duplicate_email(self, store: UserStore, user_id: int) -> None:
        with pytest.raises(IntegrityError):
            store.create_user(User(email="a@x.com", password_hash="h"))

    def test_email_is_case_sensitive(self, store: UserStore, user_id: int) -> None:
        assert store.get_by_email("A@X.COM") is None

    def test_unknown_ids(self, store: UserStore) -> None:
        assert store.get_by_id(999) is None
        assert store.get_by_email("nobody@x.com") is None
        assert store.get_session(999) is None

    def test_update_user(self, store: UserStore, user_id: int) -> None:
        assert store.update_user(user_id, password_hash="new-hash", role="ADMIN")
        user = store.get_by_id(user_id)
        assert user.password_hash == "new-hash"
        assert user.role is Role.ADMIN
        assert not store.update_user(999, password_hash="x")

    def test_replace_password_hash_requires_current_hash(self, store: UserStore, user_id: int) -> None:
        assert not store.replace_password_hash(user_id, "stale", "$2b$04$other")
        assert store.get_by_id(user_id).password_hash == "$2b$04$hash"
        assert store.replace_password_hash(user_id, "$2b$04$hash", "$2b$04$new")
        assert store.get_by_id(user_id).password_hash == "$2b$04$new"
        assert not store.replace_password_hash(user_id, "$2b$04$hash", "$2b$04$again")

    def test_delete_user_removes_session(self, store: UserStore, user_id: int) -> None:
        store.open_session(user_id, "rt-1")
        assert store.delete_user(user_id)
        assert store.get_by_id(user_id) is None
        assert store.get_session(user_id) is None
        assert not store.delete_user(user_id)

    def test_ping(self, store: UserStore) -> None:
        assert store.ping()


class TestSessionSlot:
    def test_open_overwrites(self, store: UserStore, user_id: int) -> None:
        assert store.open_session(user_id, "rt-1")
        assert store.open_session(user_id, "rt-2")
        assert store.get_session(user_id).refresh_token == "rt-2"

    def test_open_for_unknown_user(self, store: UserStore) -> None:
        assert not store.open_session(999, "rt-1")

    def test_rotate_requires_current_token(self, store: UserStore, user_id: int) -> None:
        store.open_session(user_id, "rt-1")
        assert store.rotate_session(user_id, "rt-1", "rt-2")
        # A second rotation from the same old token loses.
        assert not store.rotate_session(user_id, "rt-1", "rt-3")
        assert store.get_session(user_id).refresh_token == "rt-2"

    def test_rotate_empty_slot(self, store: UserStore, user_id: int) -> None:
        assert not store.rotate_session(user_id, "rt-1", "rt-2")
        assert store.get_session(user_id).refresh_token is None

    def test_close_requires_current_token(self, store: UserStore, user_id: int) -> None:
        store.open_session(user_id, "rt-2")
        assert not store.close_session(user_id, "rt-1")
        assert store.get_session(user_id).refresh_token == "rt-2"
        assert store.close_session(user_id, "rt-2")
        assert store.get_session(user_id).refresh_token is None

    def test_clear_is_unconditional(self, store: UserStore, user_id: int) -> None:
        store.open_session(user_id, "rt-1")
        store.clear_session(user_id)
        assert store.get_session(user_id).refresh_token is None
