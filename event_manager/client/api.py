"""
HTTP client for the Event Manager API.

Every request carries the persisted bearer token when one exists. Image
submissions go out as multipart forms; everything else is JSON.
"""

import os
import logging
from typing import Any, Dict, Optional, Tuple

import requests

from event_manager.client.token_store import TokenStore

DEFAULT_API_URL = "http://localhost:5000/api"
REQUEST_TIMEOUT = 10

# 1x1 transparent PNG shown when an event image cannot be fetched
PLACEHOLDER_IMAGE = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06"
    b"\x00\x00\x00\x1f\x15\xc4\x89\x00\x00\x00\rIDATx\x9cc\xf8\x0f\x00\x00\x01\x01"
    b"\x00\x05\x18\xd8N\x00\x00\x00\x00IEND\xaeB`\x82"
)
PLACEHOLDER_CONTENT_TYPE = "image/png"

# An image is (filename, raw bytes, content type)
ImageFile = Tuple[str, bytes, str]


class ApiError(Exception):
    """Raised for non-2xx responses; carries the server's message."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class ApiClient:
    def __init__(self, token_store: TokenStore, base_url: Optional[str] = None,
                 session: Optional[requests.Session] = None):
        self.token_store = token_store
        self.base_url = (base_url or os.getenv("EVENT_MANAGER_API_URL", DEFAULT_API_URL)).rstrip("/")
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        token = self.token_store.get_token()
        return {"Authorization": f"Bearer {token}"} if token else {}

    def request(self, method: str, path: str, **kwargs) -> requests.Response:
        """
        Send a request with the auth header attached and raise ApiError on failure.

        Passing `files` makes requests build the multipart body (and its
        boundary); otherwise pass `json`.
        """
        headers = self._headers()
        headers.update(kwargs.pop("headers", {}))
        response = self.session.request(
            method, f"{self.base_url}{path}", headers=headers, timeout=REQUEST_TIMEOUT, **kwargs
        )
        if not response.ok:
            raise ApiError(response.status_code, _error_message(response))
        return response

    # --- auth ---
    def login(self, email: str, password: str, role: Optional[str] = None) -> Dict[str, Any]:
        return self.request("POST", "/auth/login",
                            json={"email": email, "password": password, "role": role}).json()

    def register(self, user_data: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("POST", "/auth/signup", json=dict(user_data)).json()

    def verify_token(self) -> Dict[str, Any]:
        return self.request("GET", "/auth/verify-token").json()

    # --- events ---
    def get_events(self, **params) -> Dict[str, Any]:
        return self.request("GET", "/events", params=params or None).json()

    def get_event(self, event_id: int) -> Dict[str, Any]:
        return self.request("GET", f"/events/{event_id}").json()

    def create_event(self, event_data: Dict[str, Any], image: Optional[ImageFile] = None) -> Dict[str, Any]:
        return self._send_event("POST", "/events/create", event_data, image)

    def update_event(self, event_id: int, event_data: Dict[str, Any],
                     image: Optional[ImageFile] = None) -> Dict[str, Any]:
        return self._send_event("PUT", f"/events/{event_id}", event_data, image)

    def delete_event(self, event_id: int) -> Dict[str, Any]:
        return self.request("DELETE", f"/events/{event_id}").json()

    def get_event_image(self, event_id: int) -> Tuple[bytes, str]:
        """
        Fetch an event's image. Any failure degrades to a placeholder image.

        Returns:
            tuple: (bytes, content type)
        """
        try:
            response = self.request("GET", f"/events/{event_id}/image")
        except (ApiError, requests.RequestException) as e:
            logging.warning(f"Falling back to placeholder image for event {event_id}: {e}")
            return PLACEHOLDER_IMAGE, PLACEHOLDER_CONTENT_TYPE
        return response.content, response.headers.get("Content-Type", PLACEHOLDER_CONTENT_TYPE)

    def _send_event(self, method: str, path: str, event_data: Dict[str, Any],
                    image: Optional[ImageFile]) -> Dict[str, Any]:
        if image is None:
            return self.request(method, path, json=event_data).json()
        form = {k: "" if v is None else str(v) for k, v in event_data.items()}
        return self.request(method, path, data=form, files={"image": image}).json()


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.reason or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return body.get("message") or body.get("error") or f"HTTP {response.status_code}"
    return f"HTTP {response.status_code}"
