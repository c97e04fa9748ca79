"""Unit tests for auth/store.py -- UserStore repository.

Covers:
- Default roles seeded once, idempotently
- insert / find / get / list / update / delete round trips
- UNIQUE email: duplicate insert raises EmailAlreadyInUse and writes nothing
- update_user whitelist rejects password / role_id / unknown columns
- reset() wipes accounts and reseeds roles
"""

import pytest
from sqlalchemy.exc import IntegrityError

from auth.errors import EmailAlreadyInUse
from auth.models import Role, User
from auth.store import DEFAULT_ROLES, UserStore


def _user(email: str = "grace@hometracker.test", **overrides) -> User:
    values = {"email": email, "last_name": "Hopper", "first_name": "Grace", "password": "1000:ab:cd", "role_id": 4}
    values.update(overrides)
    return User(**values)


class TestRoles:
    def test_default_roles_seeded(self, store: UserStore) -> None:
        assert [(r.id, r.name) for r in store.list_roles()] == list(DEFAULT_ROLES)

    def test_seed_is_idempotent(self, store: UserStore) -> None:
        assert store.seed_default_roles() == 0
        assert len(store.list_roles()) == len(DEFAULT_ROLES)

    def test_create_and_get_role(self, store: UserStore) -> None:
        role_id = store.create_role(Role(name="Gardener"))
        assert role_id > 5
        assert store.get_role(role_id).name == "Gardener"

    def test_create_role_with_explicit_id(self, store: UserStore) -> None:
        assert store.create_role(Role(name="Tenant", id=42)) == 42

    def test_duplicate_role_name(self, store: UserStore) -> None:
        with pytest.raises(IntegrityError):
            store.create_role(Role(name="Admin"))

    def test_get_missing_role(self, store: UserStore) -> None:
        assert store.get_role(999) is None


class TestUsers:
    def test_insert_and_find(self, store: UserStore) -> None:
        uid = store.insert_user(_user(phone="0600000000"))
        found = store.find_by_email("grace@hometracker.test")
        assert found.id == uid
        assert found.phone == "0600000000"
        assert found.password == "1000:ab:cd"
        assert found.inscription_date is not None

    def test_find_unknown_email(self, store: UserStore) -> None:
        assert store.find_by_email("nobody@hometracker.test") is None

    def test_get_by_id(self, store: UserStore) -> None:
        uid = store.insert_user(_user())
        assert store.get_by_id(uid).email == "grace@hometracker.test"
        assert store.get_by_id(uid + 100) is None

    def test_duplicate_email_rejected(self, store: UserStore) -> None:
        store.insert_user(_user())
        with pytest.raises(EmailAlreadyInUse):
            store.insert_user(_user(first_name="Other", password="other"))
        assert store.count_users() == 1
        assert store.find_by_email("grace@hometracker.test").first_name == "Grace"

    def test_role_id_persisted(self, store: UserStore) -> None:
        uid = store.insert_user(_user(role_id=3))
        assert store.get_by_id(uid).role_id == 3

    def test_unknown_role_violates_foreign_key(self, store: UserStore) -> None:
        """Not reported as a taken email: the address is free, the role is not real."""
        with pytest.raises(IntegrityError):
            store.insert_user(_user(role_id=999))
        assert store.count_users() == 0

    def test_list_users_ordered_by_id(self, store: UserStore) -> None:
        a = store.insert_user(_user("a@hometracker.test"))
        b = store.insert_user(_user("b@hometracker.test"))
        assert [u.id for u in store.list_users()] == [a, b]

    def test_profile_strips_padding(self, store: UserStore) -> None:
        uid = store.insert_user(_user(first_name="Grace   ", last_name="  Hopper"))
        profile = store.get_by_id(uid).to_profile()
        assert profile["first_name"] == "Grace"
        assert profile["last_name"] == "Hopper"
        assert "password" not in profile


class TestUpdate:
    def test_update_fields(self, store: UserStore) -> None:
        uid = store.insert_user(_user())
        assert store.update_user(uid, phone="123", description="Admiral") is True
        user = store.get_by_id(uid)
        assert (user.phone, user.description) == ("123", "Admiral")

    def test_update_missing_user(self, store: UserStore) -> None:
        assert store.update_user(999, phone="123") is False

    def test_empty_update_reports_existence(self, store: UserStore) -> None:
        uid = store.insert_user(_user())
        assert store.update_user(uid) is True
        assert store.update_user(999) is False

    @pytest.mark.parametrize("column", ["password", "role_id", "id", "inscription_date", "is_admin"])
    def test_update_rejects_protected_columns(self, store: UserStore, column: str) -> None:
        uid = store.insert_user(_user())
        with pytest.raises(ValueError, match="not updatable"):
            store.update_user(uid, **{column: "x"})

    def test_update_to_taken_email(self, store: UserStore) -> None:
        store.insert_user(_user("taken@hometracker.test"))
        uid = store.insert_user(_user("mine@hometracker.test"))
        with pytest.raises(EmailAlreadyInUse):
            store.update_user(uid, email="taken@hometracker.test")
        assert store.get_by_id(uid).email == "mine@hometracker.test"

    def test_update_password(self, store: UserStore) -> None:
        uid = store.insert_user(_user())
        assert store.update_password(uid, "2000:ef:01") is True
        assert store.get_by_id(uid).password == "2000:ef:01"
        assert store.update_password(999, "x") is False


class TestDeleteAndReset:
    def test_delete(self, store: UserStore) -> None:
        uid = store.insert_user(_user())
        assert store.delete_user(uid) is True
        assert store.get_by_id(uid) is None
        assert store.delete_user(uid) is False

    def test_reset(self, store: UserStore) -> None:
        store.insert_user(_user())
        store.create_role(Role(name="Gardener"))
        store.reset()
        assert store.count_users() == 0
        assert [r.name for r in store.list_roles()] == [name for _, name in DEFAULT_ROLES]

    def test_ping(self, store: UserStore) -> None:
        assert store.ping() is True
