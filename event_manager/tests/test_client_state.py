import pytest
import requests

from event_manager.client.api import PLACEHOLDER_IMAGE, ApiClient, ApiError
from event_manager.client.routing import LayoutContext, check_access, render_layout
from event_manager.client.state import AuthState, ThemeState
from event_manager.client.token_store import TOKEN_KEY, TokenStore

USER = {"id": 1, "username": "tester", "email": "test@example.com", "role": "admin"}


@pytest.fixture
def store(tmp_path):
    return TokenStore(tmp_path / "storage.json")

@pytest.fixture
def session(mocker):
    return mocker.Mock(spec=requests.Session)

@pytest.fixture
def api(store, session):
    return ApiClient(store, base_url="http://api.test/api", session=session)


def _response(mocker, status=200, body=None, content=b"", headers=None):
    response = mocker.Mock()
    response.status_code = status
    response.ok = status < 400
    response.reason = "Error"
    response.json.return_value = body if body is not None else {}
    response.content = content
    response.headers = headers or {}
    return response


# --- TOKEN STORE ---
def test_token_store_persists_across_instances(store, tmp_path):
    store.set_token("abc")
    assert TokenStore(tmp_path / "storage.json").get_token() == "abc"

    store.remove_token()
    assert TokenStore(tmp_path / "storage.json").get_token() is None

def test_token_store_tolerates_corrupt_file(tmp_path):
    path = tmp_path / "storage.json"
    path.write_text("{not json")
    assert TokenStore(path).get_item(TOKEN_KEY) is None


# --- API CLIENT ---
def test_requests_carry_bearer_token(api, store, session, mocker):
    store.set_token("tok")
    session.request.return_value = _response(mocker, body={"events": []})

    api.get_events()

    _, kwargs = session.request.call_args
    assert kwargs["headers"]["Authorization"] == "Bearer tok"

def test_requests_without_token_have_no_auth_header(api, session, mocker):
    session.request.return_value = _response(mocker, body={"events": []})
    api.get_events()
    assert "Authorization" not in session.request.call_args[1]["headers"]

def test_create_event_with_image_sends_multipart(api, session, mocker):
    session.request.return_value = _response(mocker, status=201, body={"event": {"id": 1}})

    api.create_event({"eventName": "Demo", "price": 0, "maxAttendees": None},
                     image=("demo.jpg", b"\xff\xd8", "image/jpeg"))

    args, kwargs = session.request.call_args
    assert args == ("POST", "http://api.test/api/events/create")
    assert kwargs["files"] == {"image": ("demo.jpg", b"\xff\xd8", "image/jpeg")}
    assert kwargs["data"] == {"eventName": "Demo", "price": "0", "maxAttendees": ""}
    assert "json" not in kwargs

def test_error_response_raises_with_server_message(api, session, mocker):
    session.request.return_value = _response(mocker, status=404, body={"message": "Event not found"})
    with pytest.raises(ApiError) as exc:
        api.get_event(9)
    assert exc.value.status_code == 404
    assert exc.value.message == "Event not found"

def test_image_failure_degrades_to_placeholder(api, session, mocker):
    session.request.return_value = _response(mocker, status=404, body={"message": "Image not found"})
    content, content_type = api.get_event_image(1)
    assert content == PLACEHOLDER_IMAGE
    assert content_type == "image/png"

def test_image_network_error_degrades_to_placeholder(api, session):
    session.request.side_effect = requests.ConnectionError("down")
    content, _ = api.get_event_image(1)
    assert content == PLACEHOLDER_IMAGE


# --- AUTH STATE ---
def test_initialize_restores_session(api, store, session, mocker):
    store.set_token("tok")
    session.request.return_value = _response(mocker, body=USER)

    state = AuthState(api, store)
    assert state.is_loading
    state.initialize()

    assert state.is_authenticated
    assert state.user == USER
    assert not state.is_loading
    assert state.has_role("admin")

def test_initialize_clears_rejected_token(api, store, session, mocker):
    store.set_token("stale")
    session.request.return_value = _response(mocker, status=401, body={"message": "Invalid token"})

    state = AuthState(api, store)
    state.initialize()

    assert not state.is_authenticated
    assert store.get_token() is None
    assert not state.is_loading

def test_initialize_without_token_skips_network(api, store, session):
    state = AuthState(api, store)
    state.initialize()
    assert not session.request.called
    assert not state.is_authenticated

def test_login_persists_token(api, store, session, mocker):
    session.request.return_value = _response(mocker, body={"message": "Login successful", "user": USER, "token": "new"})

    state = AuthState(api, store)
    result = state.login("test@example.com", "password123")

    assert result == {"success": True, "user": USER}
    assert store.get_token() == "new"
    assert state.is_authenticated

def test_login_failure_surfaces_message(api, store, session, mocker):
    session.request.return_value = _response(mocker, status=400, body={"message": "Invalid credentials"})

    state = AuthState(api, store)
    result = state.login("test@example.com", "wrong")

    assert result == {"success": False, "error": "Invalid credentials"}
    assert not state.is_authenticated
    assert store.get_token() is None

def test_register_network_failure(api, store, session):
    session.request.side_effect = requests.ConnectionError("down")
    result = AuthState(api, store).register({"username": "x"})
    assert result == {"success": False, "error": "Registration failed"}

def test_logout_clears_token(api, store):
    store.set_token("tok")
    state = AuthState(api, store)
    state.user, state.is_authenticated = USER, True

    state.logout()

    assert store.get_token() is None
    assert state.user is None
    assert not state.is_authenticated


# --- THEME STATE ---
def test_theme_stays_light(store):
    theme = ThemeState(store)
    theme.initialize()
    assert theme.toggle_theme() == "light"
    assert theme.set_theme("dark") == "light"
    assert store.get_item("theme") == "light"


# --- ROUTING ---
@pytest.mark.parametrize("authed, role, required, allow, target", [
    (False, None, None, False, "/signup"),
    (False, None, "admin", False, "/signup"),
    (True, "user", "admin", False, "/"),
    (True, "admin", "admin", True, None),
    (True, "user", None, True, None),
])
def test_check_access(authed, role, required, allow, target):
    decision = check_access(authed, role, required)
    assert decision.allow is allow
    assert decision.redirect_target == target

def test_check_access_wrong_role_message():
    assert check_access(True, "user", "admin").error == "Access denied. admin role required."

def test_check_access_while_loading():
    decision = check_access(False, None, "admin", is_loading=True)
    assert decision.pending
    assert not decision.allow
    assert decision.redirect_target is None

def test_check_access_custom_redirect():
    assert check_access(False, None, redirect_to="/login").redirect_target == "/login"

def test_render_layout_passes_context(api, store):
    state = AuthState(api, store)
    state.user, state.is_authenticated = USER, True

    ctx = render_layout(state, lambda context: context)

    assert isinstance(ctx, LayoutContext)
    assert ctx.user == USER
    assert [link.path for link in ctx.nav_links] == ["/", "/admin/create-event"]
    assert ctx.logout == state.logout
