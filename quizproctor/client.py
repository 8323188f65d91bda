"""HTTP client for the quiz API and a monitor that reports cheating attempts.

:class:`QuizSessionMonitor` is the piece a quiz front end talks to: it owns a
:class:`~quizproctor.core.anticheat.ViolationDetector`, forwards the first
violation of an attempt to the server and keeps the server's verdict.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable

import httpx

from quizproctor.core.anticheat import Classification, KeyEvent, ViolationDetector
from quizproctor.core.violations import OUTCOME_BLOCKED

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class ProctorAPIError(Exception):
    """Raised when the quiz API answers with an error status."""

    def __init__(self, status_code: int, message: str, payload: dict | None = None):
        self.status_code = status_code
        self.message = message
        self.payload = payload or {}
        super().__init__(f"{status_code}: {message}")

    @property
    def blocked_reason(self) -> str | None:
        return self.payload.get("blockedReason")


class ProctorClient:
    """Thin wrapper over the REST endpoints.

    Args:
        base_url: Root URL of the API, e.g. ``http://localhost:3000``.
        token: Bearer token from a previous login, if any.
        client: An existing ``httpx.Client`` to send requests through.
    """

    def __init__(self, base_url: str = "", token: str | None = None, client: httpx.Client | None = None):
        self._client = client or httpx.Client(base_url=base_url, timeout=DEFAULT_TIMEOUT)
        self._owns_client = client is None
        self.token = token
        self.user: dict | None = None

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "ProctorClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def user_id(self) -> str | None:
        return self.user["id"] if self.user else None

    def _request(self, method: str, path: str, json: Any = None) -> dict:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        response = self._client.request(method, path, json=json, headers=headers)

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.is_error:
            message = payload.get("error") if isinstance(payload, dict) else None
            raise ProctorAPIError(response.status_code, message or response.reason_phrase, payload)

        return payload

    def _authenticate(self, path: str, body: dict) -> dict:
        payload = self._request("POST", path, json=body)
        self.token = payload["token"]
        self.user = payload["user"]
        return payload

    def register(
        self,
        email: str,
        password: str,
        display_name: str | None = None,
        admin_secret_key: str | None = None,
    ) -> dict:
        body = {"email": email, "password": password}
        if display_name:
            body["displayName"] = display_name
        if admin_secret_key:
            body["adminSecretKey"] = admin_secret_key
        return self._authenticate("/auth/register", body)

    def login(self, email: str, password: str, admin_secret_key: str | None = None) -> dict:
        body = {"email": email, "password": password}
        if admin_secret_key:
            body["adminSecretKey"] = admin_secret_key
        return self._authenticate("/auth/login", body)

    def logout(self) -> None:
        self.token = None
        self.user = None

    def me(self) -> dict:
        return self._request("GET", "/auth/me")

    def submit_quiz(self, **quiz_data) -> dict:
        return self._request("POST", "/quiz/submit", json=quiz_data)

    def history(self) -> list[dict]:
        return self._request("GET", "/quiz/history")["results"]

    def record_violation(self, user_id: str, violation_type: str) -> dict:
        return self._request("POST", f"/admin/users/{user_id}/violations", json={"violationType": violation_type})

    def record_restart(self, user_id: str) -> dict:
        return self._request("POST", f"/admin/users/{user_id}/restarts")

    def get_warnings(self, user_id: str) -> dict:
        return self._request("GET", f"/admin/users/{user_id}/warnings")

    def set_warnings(self, user_id: str, warning_count: int) -> dict:
        return self._request("PATCH", f"/admin/users/{user_id}/warnings", json={"warningCount": warning_count})

    def get_restarts(self, user_id: str) -> dict:
        return self._request("GET", f"/admin/users/{user_id}/restarts")

    def set_restarts(self, user_id: str, restart_count: int) -> dict:
        return self._request("PATCH", f"/admin/users/{user_id}/restarts", json={"restartCount": restart_count})

    def list_users(self) -> dict:
        return self._request("GET", "/admin/users")

    def list_results(self) -> dict:
        return self._request("GET", "/admin/results")

    def update_status(self, user_id: str, status: str) -> dict:
        return self._request("PATCH", f"/admin/users/{user_id}/status", json={"status": status})

    def delete_results(self, user_id: str) -> dict:
        return self._request("DELETE", f"/admin/users/{user_id}/results")

    def stats(self) -> dict:
        return self._request("GET", "/admin/stats")

    def block_user(self, user_id: str, reason: str) -> dict:
        return self._request("POST", f"/admin/users/{user_id}/block", json={"reason": reason})

    def unblock_user(self, user_id: str) -> dict:
        return self._request("POST", f"/admin/users/{user_id}/unblock")


@dataclass
class Verdict:
    violation_type: str
    outcome: str
    warning_count: int
    blocked_reason: str | None = None

    @property
    def blocked(self) -> bool:
        return self.outcome == OUTCOME_BLOCKED


class QuizSessionMonitor:
    """Connects a violation detector to the server-side blocking policy."""

    def __init__(
        self,
        client: ProctorClient,
        on_verdict: Callable[[Verdict], None] | None = None,
        enabled: bool = True,
    ):
        if client.user_id is None:
            raise ValueError("client must be logged in before monitoring a quiz")
        self.client = client
        self.on_verdict = on_verdict
        self.last_verdict: Verdict | None = None
        self.detector = ViolationDetector(self._handle_violation, enabled=enabled)

    def _handle_violation(self, violation_type: str) -> None:
        payload = self.client.record_violation(self.client.user_id, violation_type)
        verdict = Verdict(
            violation_type=violation_type,
            outcome=payload["outcome"],
            warning_count=payload["warningCount"],
            blocked_reason=payload.get("blockedReason"),
        )
        self.last_verdict = verdict
        if verdict.blocked:
            self.detector.disable()
        if self.on_verdict is not None:
            self.on_verdict(verdict)

    def key_pressed(self, event: KeyEvent) -> Classification:
        return self.detector.key_pressed(event)

    def page_event(self, kind: str, hidden: bool = False) -> Classification:
        return self.detector.page_event(kind, hidden)

    def resume(self) -> None:
        """Continue the attempt after a warning was acknowledged."""
        self.detector.reset()

    def restart(self) -> dict:
        payload = self.client.record_restart(self.client.user_id)
        if payload["outcome"] == OUTCOME_BLOCKED:
            self.detector.disable()
            logger.warning("Restart limit reached for user %s", self.client.user_id)
        else:
            self.detector.reset()
            self.last_verdict = None
        return payload
