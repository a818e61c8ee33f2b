"""
HTTP gateway to the ledger API.

Thin wrapper over ``httpx.Client``: one method per backend call, JSON in and
out, every failure raised as BackendError. Pass ``transport`` to run against
an in-process app (``httpx.WSGITransport(app=flask_app)``).
"""

from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class BackendError(Exception):
    """A backend call failed: transport error or non-2xx answer."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class HttpBackend:
    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        self._client = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)
        self._token = token

    def set_token(self, token: str | None) -> None:
        self._token = token

    @property
    def has_token(self) -> bool:
        return bool(self._token)

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def _request(self, method: str, path: str, *, auth: bool = True, **kwargs) -> httpx.Response:
        headers = kwargs.pop("headers", {})
        if auth:
            if not self._token:
                raise BackendError("Not signed in", status_code=401)
            headers["Authorization"] = f"Bearer {self._token}"
        try:
            return self._client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise BackendError(f"{method} {path} failed: {exc}") from exc

    @staticmethod
    def _json(response: httpx.Response) -> dict:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.is_success:
            return body
        message = body.get("error") if isinstance(body, dict) else None
        raise BackendError(
            message or f"HTTP {response.status_code}",
            status_code=response.status_code,
        )

    # -- auth -----------------------------------------------------------

    def login_pin(self, pin: str) -> tuple[dict, str] | None:
        """
        Exchange a PIN for (user_dict, token).

        Returns None when the backend does not accept the PIN; raises
        BackendError for anything else.
        """
        response = self._request("POST", "/api/auth/login-pin", auth=False, json={"pin": pin})
        if response.status_code == 401:
            return None
        body = self._json(response)
        return body["user"], body["token"]

    def logout(self) -> None:
        self._json(self._request("POST", "/api/auth/logout"))

    def me(self) -> dict:
        """User behind the current token; BackendError(401) once it has lapsed."""
        return self._json(self._request("GET", "/api/auth/me"))["user"]

    # -- transactions ---------------------------------------------------

    def list_transactions(self, payment_type: str, business_date: str) -> list[dict]:
        body = self._json(self._request(
            "GET",
            "/api/transactions",
            params={"payment_type": payment_type, "business_date": business_date},
        ))
        return body["transactions"]

    def insert_transaction(
        self,
        *,
        payment_type: str,
        business_date: str,
        entry_number: int,
        fields: dict,
    ) -> dict:
        payload = dict(fields)
        payload.update(
            payment_type=payment_type,
            business_date=business_date,
            entry_number=entry_number,
        )
        return self._json(self._request("POST", "/api/transactions", json=payload))["transaction"]

    def update_transaction(self, transaction_id: int, fields: dict) -> dict:
        body = self._json(self._request("PATCH", f"/api/transactions/{transaction_id}", json=fields))
        return body["transaction"]

    def delete_transaction(self, transaction_id: int) -> list[dict]:
        """Delete a row; returns the rows the backend renumbered."""
        body = self._json(self._request("DELETE", f"/api/transactions/{transaction_id}"))
        return body["renumbered"]
