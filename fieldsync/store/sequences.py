from __future__ import annotations

import sqlite3

from ..utils import now_iso


def next_sequence(conn: sqlite3.Connection, row_id: str) -> int:
    if not row_id.strip():
        raise ValueError("row_id is required")
    now = now_iso()
    # One statement: the read-modify-write cannot interleave with another writer.
    with conn:
        rows = conn.execute(
            """
            INSERT INTO row_sequences(row_id, sequence, updated_at)
            VALUES (?, 1, ?)
            ON CONFLICT(row_id) DO UPDATE SET
                sequence = row_sequences.sequence + 1,
                updated_at = excluded.updated_at
            RETURNING sequence
            """,
            (row_id, now),
        ).fetchall()
    if not rows:
        raise RuntimeError("Failed to allocate local sequence")
    return int(rows[0]["sequence"])


def current_sequence(conn: sqlite3.Connection, row_id: str) -> int:
    row = conn.execute(
        "SELECT sequence FROM row_sequences WHERE row_id = ?", (row_id,)
    ).fetchone()
    if row is None:
        return 0
    return int(row["sequence"])


def reset_sequences(conn: sqlite3.Connection) -> int:
    # Rows that still hold queued mutations keep their counter.
    with conn:
        cur = conn.execute(
            """
            DELETE FROM row_sequences
            WHERE row_id NOT IN (SELECT DISTINCT row_id FROM mutations)
            """
        )
    return int(cur.rowcount or 0)
