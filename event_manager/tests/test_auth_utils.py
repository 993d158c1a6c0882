import pytest
import jwt
from datetime import datetime, timedelta, timezone
from flask import g

from event_manager.auth_service import utils
from event_manager.auth_service.utils import (
    create_token,
    decode_token,
    require_role,
    role_required,
    verify_token_from_request,
)
from event_manager.errors import Forbidden, Unauthorized


@pytest.fixture(autouse=True)
def mock_jwt_secret(mocker):
    mocker.patch("event_manager.auth_service.utils.JWT_SECRET", "test_secret")


def test_create_token():
    token = create_token(123, "admin")

    assert isinstance(token, str)

    payload = jwt.decode(token, "test_secret", algorithms=["HS256"])
    assert payload["sub"] == "123"
    assert payload["role"] == "admin"
    assert "exp" in payload
    assert "iat" in payload

def test_decode_token_wrong_key():
    token = jwt.encode({"sub": "1", "role": "admin"}, "some_other_secret", algorithm="HS256")
    with pytest.raises(Unauthorized, match="Invalid token"):
        decode_token(token)

def test_decode_token_expired():
    past = datetime.now(timezone.utc) - timedelta(hours=1)
    token = jwt.encode({"sub": "1", "role": "user", "exp": past}, "test_secret", algorithm="HS256")
    with pytest.raises(Unauthorized, match="Token expired"):
        decode_token(token)

def test_verify_token_from_request_valid(app, users):
    users[789] = {"user_id": 789, "username": "u", "email": "u@example.com", "role": "user"}
    token = create_token(789, "user")

    with app.test_request_context(headers={"Authorization": f"Bearer {token}"}):
        identity = verify_token_from_request()

    assert identity == {"id": 789, "username": "u", "email": "u@example.com", "role": "user"}

def test_verify_token_from_request_missing_header(app):
    with app.test_request_context():
        with pytest.raises(Unauthorized):
            verify_token_from_request()

def test_verify_token_from_request_invalid_format(app):
    with app.test_request_context(headers={"Authorization": "InvalidFormat"}):
        with pytest.raises(Unauthorized):
            verify_token_from_request()

def test_verify_token_from_request_user_gone(app, users):
    token = create_token(111, "user")
    with app.test_request_context(headers={"Authorization": f"Bearer {token}"}):
        with pytest.raises(Unauthorized):
            verify_token_from_request()

def test_load_user_queries_database(app, mocker):
    mock_conn = mocker.MagicMock()
    mock_cursor = mock_conn.cursor.return_value.__enter__.return_value
    mock_cursor.fetchone.return_value = {"user_id": 4, "username": "four", "email": "4@example.com", "role": "user"}
    mocker.patch("event_manager.auth_service.utils.get_db", return_value=mock_conn)

    assert utils.load_user(4)["username"] == "four"
    assert mock_cursor.execute.call_args[0][1] == (4,)
    mock_conn.close.assert_called_once()

def test_require_role():
    require_role({"role": "admin"}, "admin")
    with pytest.raises(Forbidden, match="admin role required"):
        require_role({"role": "user"}, "admin")

def test_role_required_sets_current_user(app, users):
    users[1] = {"user_id": 1, "username": "a", "email": "a@example.com", "role": "admin"}

    @role_required("admin")
    def view():
        return g.current_user["id"]

    with app.test_request_context(headers={"Authorization": f"Bearer {create_token(1, 'admin')}"}):
        assert view() == 1

def test_role_required_rejects_other_roles(app, users):
    users[2] = {"user_id": 2, "username": "b", "email": "b@example.com", "role": "user"}

    @role_required("admin")
    def view():
        return "reached"

    with app.test_request_context(headers={"Authorization": f"Bearer {create_token(2, 'user')}"}):
        with pytest.raises(Forbidden):
            view()
