import json
import logging
from pathlib import Path
from typing import Optional
import requests
from app.schemas import notification as notification_schemas

logger = logging.getLogger(__name__)


class AuthExpired(Exception):
    """The server rejected our credentials; the session must be torn down."""


class TransientFetchError(Exception):
    """Network failure or unexpected status. Cached state stays usable."""


class CredentialStore:
    """Bearer token persisted to a small JSON file."""

    def __init__(self, path):
        self.path = Path(path)

    def load(self) -> Optional[str]:
        if not self.path.exists():
            return None
        try:
            return json.loads(self.path.read_text()).get("token")
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read credentials from {self.path}: {e}")
            return None

    def save(self, token: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps({"token": token}))

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()


class NotificationsApi:
    def __init__(self, base_url: str, credentials: CredentialStore, http: Optional[requests.Session] = None, timeout: float = 10):
        self.base_url = base_url.rstrip("/")
        self.credentials = credentials
        self.http = http or requests.Session()
        self.timeout = timeout

    def _request(self, method: str, path: str, **kwargs) -> dict:
        token = self.credentials.load()
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        url = f"{self.base_url}{path}"
        try:
            response = self.http.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise TransientFetchError(f"{method} {path} failed: {e}") from e

        if response.status_code == 401:
            raise AuthExpired("Session expired")
        if not response.ok:
            raise TransientFetchError(f"{method} {path} failed with status {response.status_code}")
        return response.json()

    def fetch(self, page: int = 1, limit: int = 20) -> notification_schemas.NotificationPage:
        data = self._request("GET", "/notifications/", params={"page": page, "limit": limit})
        return notification_schemas.NotificationPage.model_validate(data)

    def unread_count(self) -> int:
        return self._request("GET", "/notifications/unread-count")["count"]

    def mark_read(self, notification_id: str) -> int:
        return self._request("PATCH", f"/notifications/{notification_id}/read")["unread_count"]

    def mark_all_read(self) -> int:
        return self._request("POST", "/notifications/mark-all-read")["updated"]

    def delete(self, notification_id: str) -> None:
        self._request("DELETE", f"/notifications/{notification_id}")

    def accept_follow_request(self, username: str) -> None:
        self._request("POST", f"/social/follow-requests/{username}/accept")

    def reject_follow_request(self, username: str) -> None:
        self._request("POST", f"/social/follow-requests/{username}/reject")
