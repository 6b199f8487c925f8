import pytest
from tms.application.schemas import LoginInput, RegisterInput
from tms.application.service import UserService
from tms.auth_local import decode_access_token
from tms.domain.models import User, UserRole
from tms.errors import BadUserInputError, UnauthenticatedError

@pytest.fixture
def users(db, settings):
    return UserService(db, settings)

def _register(users, email="jane@tms.com", password="secret123", role=UserRole.employee):
    return users.register(RegisterInput(email=email, password=password, name="Jane Employee", role=role))

def test_register_hashes_password_and_issues_token(users, settings):
    token, user = _register(users)

    assert user.password_hash != "secret123"
    assert user.password_hash.startswith("$2")
    assert user.role is UserRole.employee
    assert user.is_active is True
    claim = decode_access_token(token, settings)
    assert claim.user_id == user.id
    assert claim.role is UserRole.employee

def test_register_duplicate_email_is_bad_input(users, db):
    _register(users)
    with pytest.raises(BadUserInputError) as exc:
        _register(users, email="JANE@tms.com")
    assert exc.value.extensions["code"] == "BAD_USER_INPUT"
    assert db.query(User).count() == 1

def test_login_updates_last_login(users, settings):
    _, registered = _register(users, role=UserRole.admin)
    assert registered.last_login is None

    token, user = users.authenticate(LoginInput(email="jane@tms.com", password="secret123"))

    assert user.id == registered.id
    assert user.last_login is not None
    assert decode_access_token(token, settings).role is UserRole.admin

def test_login_failures_share_one_error(users):
    _register(users)
    with pytest.raises(UnauthenticatedError) as wrong_password:
        users.authenticate(LoginInput(email="jane@tms.com", password="wrong-password"))
    with pytest.raises(UnauthenticatedError) as unknown_email:
        users.authenticate(LoginInput(email="nobody@tms.com", password="secret123"))

    assert wrong_password.value.message == unknown_email.value.message == "Invalid credentials"
    assert wrong_password.value.extensions == unknown_email.value.extensions == {"code": "UNAUTHENTICATED"}

def test_inactive_user_cannot_login(users, db):
    _, user = _register(users)
    user.is_active = False
    db.commit()
    with pytest.raises(UnauthenticatedError):
        users.authenticate(LoginInput(email="jane@tms.com", password="secret123"))

def test_get_many_and_list_all(users):
    _, first = _register(users, email="first@tms.com")
    _, second = _register(users, email="second@tms.com")

    assert {u.id for u in users.get_many([first.id, second.id, "missing"])} == {first.id, second.id}
    assert users.get_many([]) == []
    assert [u.id for u in users.list_all()] == [first.id, second.id]
