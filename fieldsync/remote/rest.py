"""Remote store client for a PostgREST-style API (e.g. a Supabase project)."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlparse

import httpx

from ..errors import RemoteConflict, RemoteFailure
from ..store import Record
from .base import DailyScan, record_from_row

logger = logging.getLogger(__name__)

DUPLICATE_KEY_CODE = "23505"


def build_base_url(address: str) -> str:
    trimmed = address.strip().rstrip("/")
    if not trimmed:
        return ""
    parsed = urlparse(trimmed)
    if parsed.scheme:
        return trimmed
    return f"https://{trimmed}"


def _error_detail(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    message = payload.get("message") or payload.get("error")
    code = payload.get("code")
    if isinstance(message, str) and code:
        return f"{code}:{message}"
    if isinstance(message, str):
        return message
    return None


class RestRemoteStore:
    BARCODES_TABLE = "barcodes"
    DAILY_SCANS_TABLE = "daily_scans"
    USER_TOTAL_FUNCTION = "update-user-total-scans"

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        access_token: str | None = None,
        timeout_s: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        url = build_base_url(base_url)
        if not url:
            raise ValueError("remote url is required")
        headers = {"Accept": "application/json"}
        if api_key:
            headers["apikey"] = api_key
        token = access_token or api_key
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.base_url = url
        self._client = httpx.Client(
            base_url=url,
            headers=headers,
            timeout=timeout_s,
            transport=transport,
        )

    def __enter__(self) -> RestRemoteStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _table_path(self, table: str) -> str:
        return f"/rest/v1/{table}"

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> httpx.Response:
        headers = {"Prefer": prefer} if prefer else None
        try:
            return self._client.request(method, path, params=params, json=json, headers=headers)
        except httpx.HTTPError as exc:
            detail = str(exc).strip() or exc.__class__.__name__
            raise RemoteFailure(f"{method} {path} failed: {detail}") from exc

    @staticmethod
    def _payload(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            snippet = response.text[:240].strip()
            return {"error": f"non_json_response: {snippet}" if snippet else "non_json_response"}

    def _check(self, response: httpx.Response, action: str) -> Any:
        payload = self._payload(response)
        if response.is_success:
            return payload
        detail = _error_detail(payload)
        code = payload.get("code") if isinstance(payload, dict) else None
        # Only a unique violation means the write already landed. Other 409s
        # (foreign key) and 404s (missing table or endpoint) are failures; a
        # missing row shows up as an empty representation instead.
        if code == DUPLICATE_KEY_CODE:
            raise RemoteConflict(RemoteConflict.DUPLICATE, f"{action}: duplicate key")
        suffix = f" ({response.status_code}: {detail})" if detail else f" ({response.status_code})"
        raise RemoteFailure(f"{action} failed{suffix}")

    def _rows(self, payload: Any, action: str) -> list[dict[str, Any]]:
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise RemoteFailure(f"{action} failed: unexpected response")
        return [row for row in payload if isinstance(row, dict)]

    def insert_record(self, record: dict[str, Any]) -> None:
        response = self._request(
            "POST",
            self._table_path(self.BARCODES_TABLE),
            json=record,
            prefer="return=minimal",
        )
        self._check(response, "insert barcode")

    def delete_record(self, record_id: str) -> None:
        response = self._request(
            "DELETE",
            self._table_path(self.BARCODES_TABLE),
            params={"id": f"eq.{record_id}"},
            prefer="return=representation",
        )
        rows = self._rows(self._check(response, "delete barcode"), "delete barcode")
        if not rows:
            raise RemoteConflict(RemoteConflict.NOT_FOUND, f"barcode {record_id} not found")

    def update_record(self, record_id: str, fields: dict[str, Any]) -> None:
        response = self._request(
            "PATCH",
            self._table_path(self.BARCODES_TABLE),
            params={"id": f"eq.{record_id}"},
            json=fields,
            prefer="return=representation",
        )
        rows = self._rows(self._check(response, "update barcode"), "update barcode")
        if not rows:
            raise RemoteConflict(RemoteConflict.NOT_FOUND, f"barcode {record_id} not found")

    def fetch_row_records(self, row_id: str) -> list[Record]:
        response = self._request(
            "GET",
            self._table_path(self.BARCODES_TABLE),
            params={"row_id": f"eq.{row_id}", "select": "*", "order": "order_in_row.asc"},
        )
        rows = self._rows(self._check(response, "fetch barcodes"), "fetch barcodes")
        return [record_from_row(row) for row in rows]

    def get_daily_scan(self, user_id: str, date: str) -> DailyScan | None:
        response = self._request(
            "GET",
            self._table_path(self.DAILY_SCANS_TABLE),
            params={"user_id": f"eq.{user_id}", "date": f"eq.{date}", "select": "id,count"},
        )
        rows = self._rows(self._check(response, "fetch daily scans"), "fetch daily scans")
        if not rows:
            return None
        row = rows[0]
        return {
            "id": str(row.get("id") or ""),
            "user_id": user_id,
            "date": date,
            "count": int(row.get("count") or 0),
        }

    def insert_daily_scan(self, user_id: str, date: str, count: int) -> None:
        response = self._request(
            "POST",
            self._table_path(self.DAILY_SCANS_TABLE),
            json={"user_id": user_id, "date": date, "count": count},
            prefer="return=minimal",
        )
        self._check(response, "insert daily scans")

    def update_daily_scan(self, scan_id: str, count: int) -> None:
        response = self._request(
            "PATCH",
            self._table_path(self.DAILY_SCANS_TABLE),
            params={"id": f"eq.{scan_id}"},
            json={"count": count},
            prefer="return=minimal",
        )
        self._check(response, "update daily scans")

    def recompute_user_total(self, user_id: str) -> None:
        response = self._request(
            "POST",
            f"/functions/v1/{self.USER_TOTAL_FUNCTION}",
            json={"userId": user_id},
        )
        self._check(response, "recompute user total")

    def ping(self) -> bool:
        try:
            response = self._request("GET", "/rest/v1/")
        except RemoteFailure as exc:
            logger.debug("remote ping failed: %s", exc)
            return False
        return response.status_code < 500
