from __future__ import annotations

import sqlite3
from typing import Any

from .. import db
from ..utils import now_iso
from .types import (
    MUTATION_STATUSES,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_SYNCING,
    Mutation,
    MutationPayload,
)

_ORDER_BY = "ORDER BY timestamp ASC, local_sequence ASC, created_at ASC"


def _row_to_mutation(row: sqlite3.Row) -> Mutation:
    payload: MutationPayload = db.from_json(row["payload_json"])  # type: ignore[assignment]
    return Mutation(
        id=str(row["id"]),
        kind=str(row["kind"]),
        payload=payload,
        created_at=str(row["created_at"]),
        status=str(row["status"]),
    )


def insert_mutation(
    conn: sqlite3.Connection,
    *,
    mutation_id: str,
    kind: str,
    payload: MutationPayload,
    created_at: str,
) -> None:
    row_id = str(payload.get("row_id") or "")
    timestamp = str(payload.get("timestamp") or "")
    if not row_id:
        raise ValueError("row_id is required")
    if not timestamp:
        raise ValueError("timestamp is required")
    with conn:
        conn.execute(
            """
            INSERT INTO mutations(
                id,
                kind,
                row_id,
                status,
                timestamp,
                local_sequence,
                payload_json,
                created_at,
                updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                mutation_id,
                kind,
                row_id,
                STATUS_PENDING,
                timestamp,
                int(payload.get("local_sequence") or 0),
                db.to_json(payload),
                created_at,
                created_at,
            ),
        )


def get_mutation(conn: sqlite3.Connection, mutation_id: str) -> Mutation | None:
    row = conn.execute(
        "SELECT id, kind, status, payload_json, created_at FROM mutations WHERE id = ?",
        (mutation_id,),
    ).fetchone()
    if row is None:
        return None
    return _row_to_mutation(row)


def list_mutations(
    conn: sqlite3.Connection,
    *,
    row_id: str | None = None,
    status: str | None = None,
) -> list[Mutation]:
    clauses: list[str] = []
    params: list[Any] = []
    if row_id is not None:
        clauses.append("row_id = ?")
        params.append(row_id)
    if status is not None:
        clauses.append("status = ?")
        params.append(status)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    rows = conn.execute(
        f"""
        SELECT id, kind, status, payload_json, created_at
        FROM mutations
        {where}
        {_ORDER_BY}
        """,
        params,
    ).fetchall()
    return [_row_to_mutation(row) for row in rows]


def count_mutations(conn: sqlite3.Connection, *, status: str | None = None) -> int:
    if status is None:
        row = conn.execute("SELECT COUNT(*) AS n FROM mutations").fetchone()
    else:
        row = conn.execute(
            "SELECT COUNT(*) AS n FROM mutations WHERE status = ?", (status,)
        ).fetchone()
    return int(row["n"] or 0) if row else 0


def mutation_status_counts(conn: sqlite3.Connection) -> dict[str, int]:
    rows = conn.execute("SELECT status, COUNT(*) AS n FROM mutations GROUP BY status").fetchall()
    counts = {status: 0 for status in MUTATION_STATUSES}
    for row in rows:
        status = str(row["status"] or "")
        if status in counts:
            counts[status] += int(row["n"] or 0)
    return counts


def set_mutation_status(conn: sqlite3.Connection, mutation_id: str, status: str) -> None:
    if status not in MUTATION_STATUSES:
        raise ValueError(f"unknown mutation status: {status}")
    with conn:
        conn.execute(
            "UPDATE mutations SET status = ?, updated_at = ? WHERE id = ?",
            (status, now_iso(), mutation_id),
        )


def claim_mutation(conn: sqlite3.Connection, mutation_id: str) -> bool:
    with conn:
        rows = conn.execute(
            """
            UPDATE mutations
            SET status = ?, updated_at = ?
            WHERE id = ? AND status = ?
            RETURNING id
            """,
            (STATUS_SYNCING, now_iso(), mutation_id, STATUS_PENDING),
        ).fetchall()
    return bool(rows)


def delete_mutation(conn: sqlite3.Connection, mutation_id: str) -> bool:
    with conn:
        cur = conn.execute("DELETE FROM mutations WHERE id = ?", (mutation_id,))
    return int(cur.rowcount or 0) > 0


def clear_mutations(conn: sqlite3.Connection) -> int:
    with conn:
        cur = conn.execute("DELETE FROM mutations")
    return int(cur.rowcount or 0)


def reset_mutations_to_pending(
    conn: sqlite3.Connection,
    *,
    ids: list[str] | None = None,
    from_status: str = STATUS_SYNCING,
    older_than_iso: str | None = None,
) -> int:
    clauses = ["status = ?"]
    params: list[Any] = [from_status]
    if ids is not None:
        if not ids:
            return 0
        placeholders = ",".join("?" for _ in ids)
        clauses.append(f"id IN ({placeholders})")
        params.extend(ids)
    if older_than_iso is not None:
        clauses.append("updated_at < ?")
        params.append(older_than_iso)
    with conn:
        cur = conn.execute(
            f"""
            UPDATE mutations
            SET status = ?, updated_at = ?
            WHERE {' AND '.join(clauses)}
            """,
            [STATUS_PENDING, now_iso(), *params],
        )
    return int(cur.rowcount or 0)


def mark_stuck_mutations_pending(conn: sqlite3.Connection, *, older_than_iso: str) -> int:
    return reset_mutations_to_pending(conn, older_than_iso=older_than_iso)


def retry_failed_mutations(conn: sqlite3.Connection) -> int:
    return reset_mutations_to_pending(conn, from_status=STATUS_FAILED)
