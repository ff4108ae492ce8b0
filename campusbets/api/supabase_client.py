from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, Optional

import requests

from campusbets.errors import AppError

logger = logging.getLogger(__name__)

# PostgREST / Postgres codes surfaced in error bodies
UNIQUE_VIOLATION = "23505"
NO_ROWS = "PGRST116"


class StoreError(AppError):
    """Raised when the backend cannot satisfy a request."""

    def __init__(self, message: str, status: Optional[int] = None, pg_code: Optional[str] = None, code: int = 9001) -> None:
        self.status = status
        self.pg_code = pg_code
        super().__init__(code, message)


class DuplicateKeyError(StoreError):
    def __init__(self, message: str, status: Optional[int] = None, pg_code: Optional[str] = None) -> None:
        super().__init__(message, status, pg_code, code=9002)


class NotFoundError(StoreError):
    def __init__(self, message: str, status: Optional[int] = None, pg_code: Optional[str] = None) -> None:
        super().__init__(message, status, pg_code, code=9003)


class StoreTimeout(StoreError):
    def __init__(self, message: str) -> None:
        super().__init__(message, code=9004)


def eq(value: Any) -> str:
    """PostgREST equality filter value."""
    return f"eq.{value}"


class SupabaseClient:
    """Small Supabase REST client with simple retry/backoff.

    Reads are retried on 429/5xx and network errors. Writes are only retried
    on 429, since a 5xx after an RPC increment may already have been applied.
    """

    RETRY_STATUS = {429, 500, 502, 503, 504}

    def __init__(
        self,
        base_url: Optional[str] = None,
        anon_key: Optional[str] = None,
        timeout: float = 10.0,
        retries: int = 3,
    ) -> None:
        self.base_url = base_url or os.getenv("SUPABASE_URL", "")
        self.anon_key = anon_key or os.getenv("SUPABASE_ANON_KEY", "")
        if not self.base_url or not self.anon_key:
            logger.error("Missing Supabase credentials; set SUPABASE_URL and SUPABASE_ANON_KEY")
        self.timeout = timeout
        self.retries = retries
        self.session = requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    def _headers(self, token: Optional[str], extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {token or self.anon_key}",
        }
        if extra:
            headers.update(extra)
        return headers

    def _request(
        self,
        method: str,
        path: str,
        token: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> Any:
        url = f"{self.base_url.rstrip('/')}{path}"
        idempotent = method.upper() == "GET"
        backoff = 1.0

        for attempt in range(1, self.retries + 1):
            try:
                response = self.session.request(
                    method, url, headers=self._headers(token, headers), timeout=self.timeout, **kwargs
                )
            except requests.Timeout as exc:
                if not idempotent or attempt == self.retries:
                    raise StoreTimeout(f"{method} {path} timed out after {self.timeout:g}s") from exc
                time.sleep(backoff)
                backoff *= 2
                continue
            except requests.RequestException as exc:  # pragma: no cover - network instability
                if not idempotent or attempt == self.retries:
                    raise StoreError(f"{method} {path} failed after {attempt} attempts: {exc}") from exc
                time.sleep(backoff)
                backoff *= 2
                continue

            retryable = response.status_code == 429 or (idempotent and response.status_code in self.RETRY_STATUS)
            if retryable:
                if attempt == self.retries:
                    raise StoreError(
                        f"{method} {path} failed after retries ({response.status_code}): {response.text[:200]}",
                        status=response.status_code,
                    )
                logger.warning("Retrying %s %s after status %s", method, path, response.status_code)
                time.sleep(backoff)
                backoff *= 2
                continue

            if 400 <= response.status_code:
                self._raise_for_error(method, path, response)

            if response.status_code == 204 or not response.text:
                return None
            try:
                return response.json()
            except ValueError as exc:  # pragma: no cover - unexpected payloads
                raise StoreError(f"{method} {path} response was not valid JSON") from exc

        raise StoreError(f"{method} {path} unexpectedly exhausted retries")

    def _raise_for_error(self, method: str, path: str, response: Any) -> None:
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        pg_code = payload.get("code")
        message = (
            payload.get("message")
            or payload.get("msg")
            or payload.get("error_description")
            or response.text[:200]
        )
        status = response.status_code
        # 409 also covers foreign-key and check violations; only 23505 is a duplicate
        if pg_code == UNIQUE_VIOLATION or (status == 409 and not pg_code):
            raise DuplicateKeyError(f"{method} {path}: {message}", status, pg_code)
        if status == 404 or pg_code == NO_ROWS:
            raise NotFoundError(f"{method} {path}: {message}", status, pg_code)
        raise StoreError(f"{method} {path} failed with status {status}: {message}", status, pg_code)

    def select(
        self,
        table: str,
        filters: Optional[Dict[str, str]] = None,
        order: Optional[str] = None,
        single: bool = False,
        token: Optional[str] = None,
    ) -> Any:
        """Read rows; ``single`` asks PostgREST for exactly one object."""
        params: Dict[str, str] = {"select": "*"}
        params.update(filters or {})
        if order:
            params["order"] = order
        headers = {"Accept": "application/vnd.pgrst.object+json"} if single else None
        return self._request("GET", f"/rest/v1/{table}", token=token, headers=headers, params=params)

    def insert(self, table: str, row: Dict[str, Any], token: Optional[str] = None) -> Dict[str, Any]:
        rows = self._request(
            "POST",
            f"/rest/v1/{table}",
            token=token,
            headers={"Prefer": "return=representation"},
            json=row,
        )
        if isinstance(rows, list):
            if not rows:
                raise StoreError(f"Insert into {table} returned no rows")
            return rows[0]
        return rows

    def post(
        self,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
        token: Optional[str] = None,
    ) -> Any:
        """POST to a path under the project URL, e.g. the auth endpoints."""
        return self._request("POST", path, token=token, params=params, json=json)

    def rpc(self, function: str, args: Dict[str, Any], token: Optional[str] = None) -> Any:
        """Call a Postgres function exposed by PostgREST."""
        return self._request("POST", f"/rest/v1/rpc/{function}", token=token, json=args)
