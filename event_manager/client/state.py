"""
Application state objects for the client: authentication and theme.

Both are constructed once at startup and handed to whatever needs them.
Lifecycle for AuthState: `initialize()` on startup restores the persisted
session, `logout()` clears it, `teardown()` drops in-memory identity
without touching storage.
"""

import logging
from typing import Any, Dict, Optional

import requests

from event_manager.client.api import ApiClient, ApiError
from event_manager.client.token_store import TokenStore

THEME_KEY = "theme"


class AuthState:
    def __init__(self, api: ApiClient, token_store: TokenStore):
        self.api = api
        self.token_store = token_store
        self.user: Optional[Dict[str, Any]] = None
        self.is_authenticated = False
        self.is_loading = True

    def initialize(self) -> None:
        """Restore the session from the persisted token, clearing it if it no longer verifies."""
        try:
            if self.token_store.get_token():
                self.user = self.api.verify_token()
                self.is_authenticated = True
        except (ApiError, requests.RequestException) as e:
            logging.warning(f"Auth initialization failed: {e}")
            self._clear()
        finally:
            self.is_loading = False

    def login(self, email: str, password: str, role: str = "user") -> Dict[str, Any]:
        return self._authenticate(lambda: self.api.login(email, password, role), "Login failed")

    def register(self, user_data: Dict[str, Any]) -> Dict[str, Any]:
        return self._authenticate(lambda: self.api.register(user_data), "Registration failed")

    def logout(self) -> None:
        self._clear()

    def teardown(self) -> None:
        self.user = None
        self.is_authenticated = False
        self.is_loading = True

    def has_role(self, role: str) -> bool:
        return bool(self.user) and self.user.get("role") == role

    @property
    def role(self) -> Optional[str]:
        return self.user.get("role") if self.user else None

    def _authenticate(self, call, fallback_error: str) -> Dict[str, Any]:
        self.is_loading = True
        try:
            body = call()
        except ApiError as e:
            logging.error(f"{fallback_error}: {e.message}")
            return {"success": False, "error": e.message or fallback_error}
        except requests.RequestException as e:
            logging.error(f"{fallback_error}: {e}")
            return {"success": False, "error": fallback_error}
        finally:
            self.is_loading = False

        self.token_store.set_token(body["token"])
        self.user = body["user"]
        self.is_authenticated = True
        return {"success": True, "user": self.user}

    def _clear(self) -> None:
        self.token_store.remove_token()
        self.user = None
        self.is_authenticated = False


class ThemeState:
    """
    Theme selection. The application ships light-only, so toggling and
    explicit selection both settle on "light".
    """

    FORCED_THEME = "light"

    def __init__(self, token_store: TokenStore):
        self.token_store = token_store
        self.theme = self.FORCED_THEME

    def initialize(self) -> None:
        self.set_theme(self.token_store.get_item(THEME_KEY) or self.FORCED_THEME)

    def toggle_theme(self) -> str:
        return self.set_theme("dark" if self.theme == "light" else "light")

    def set_theme(self, theme: str) -> str:
        self.theme = self.FORCED_THEME
        self.token_store.set_item(THEME_KEY, self.theme)
        return self.theme
