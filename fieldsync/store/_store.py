from __future__ import annotations

import contextlib
import logging
import sqlite3
from collections.abc import Iterator
from pathlib import Path
from uuid import uuid4

from .. import db
from ..errors import StorageUnavailable
from ..utils import now_iso
from . import mutations as store_mutations
from . import sequences as store_sequences
from .types import MUTATION_KINDS, Mutation, MutationPayload

logger = logging.getLogger(__name__)


class QueueStore:
    """Durable log of pending mutations plus per-row sequence counters.

    Every method is one SQLite transaction. Any ``sqlite3.Error`` surfaces as
    ``StorageUnavailable`` so callers never mistake a lost write for a saved one.
    """

    def __init__(
        self,
        db_path: Path | str = db.DEFAULT_DB_PATH,
        *,
        check_same_thread: bool = True,
    ):
        self.db_path = Path(db_path).expanduser()
        try:
            self.conn = db.connect(self.db_path, check_same_thread=check_same_thread)
            db.initialize_schema(self.conn)
        except (sqlite3.Error, OSError) as exc:
            raise StorageUnavailable(f"cannot open queue database {self.db_path}: {exc}") from exc

    def __enter__(self) -> QueueStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @contextlib.contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        try:
            yield
        except sqlite3.Error as exc:
            logger.error("queue store %s failed: %s", action, exc)
            raise StorageUnavailable(f"queue store {action} failed: {exc}") from exc

    @staticmethod
    def _now_iso() -> str:
        return now_iso()

    @staticmethod
    def generate_id() -> str:
        return uuid4().hex

    def append(self, kind: str, payload: MutationPayload) -> Mutation:
        if kind not in MUTATION_KINDS:
            raise ValueError(f"unknown mutation kind: {kind}")
        mutation = Mutation(
            id=self.generate_id(),
            kind=kind,
            payload=dict(payload),  # type: ignore[arg-type]
            created_at=self._now_iso(),
        )
        with self._guard("append"):
            store_mutations.insert_mutation(
                self.conn,
                mutation_id=mutation.id,
                kind=mutation.kind,
                payload=mutation.payload,
                created_at=mutation.created_at,
            )
        logger.debug("queued %s mutation %s for row %s", kind, mutation.id, mutation.row_id)
        return mutation

    def next_sequence(self, row_id: str) -> int:
        with self._guard("next_sequence"):
            return store_sequences.next_sequence(self.conn, row_id)

    def current_sequence(self, row_id: str) -> int:
        with self._guard("current_sequence"):
            return store_sequences.current_sequence(self.conn, row_id)

    def reset_sequences(self) -> int:
        with self._guard("reset_sequences"):
            cleared = store_sequences.reset_sequences(self.conn)
        logger.debug("reset %s row sequence counters", cleared)
        return cleared

    def get(self, mutation_id: str) -> Mutation | None:
        with self._guard("get"):
            return store_mutations.get_mutation(self.conn, mutation_id)

    def list_all(self, status: str | None = None) -> list[Mutation]:
        with self._guard("list_all"):
            return store_mutations.list_mutations(self.conn, status=status)

    def list_for_row(self, row_id: str, status: str | None = None) -> list[Mutation]:
        with self._guard("list_for_row"):
            return store_mutations.list_mutations(self.conn, row_id=row_id, status=status)

    def count(self, status: str | None = None) -> int:
        with self._guard("count"):
            return store_mutations.count_mutations(self.conn, status=status)

    def status_counts(self) -> dict[str, int]:
        with self._guard("status_counts"):
            return store_mutations.mutation_status_counts(self.conn)

    def set_status(self, mutation_id: str, status: str) -> None:
        with self._guard("set_status"):
            store_mutations.set_mutation_status(self.conn, mutation_id, status)

    def claim(self, mutation_id: str) -> bool:
        """Move a pending mutation to syncing; False if someone else owns it."""
        with self._guard("claim"):
            return store_mutations.claim_mutation(self.conn, mutation_id)

    def release(self, mutation_ids: list[str]) -> int:
        """Return the given syncing mutations to pending."""
        with self._guard("release"):
            return store_mutations.reset_mutations_to_pending(self.conn, ids=mutation_ids)

    def remove(self, mutation_id: str) -> bool:
        with self._guard("remove"):
            removed = store_mutations.delete_mutation(self.conn, mutation_id)
        logger.debug("removed mutation %s", mutation_id)
        return removed

    def clear_all(self) -> int:
        with self._guard("clear_all"):
            return store_mutations.clear_mutations(self.conn)

    def recover_stuck(self, *, older_than_iso: str) -> int:
        with self._guard("recover_stuck"):
            recovered = store_mutations.mark_stuck_mutations_pending(
                self.conn, older_than_iso=older_than_iso
            )
        if recovered:
            logger.warning("recovered %s mutations stuck in syncing", recovered)
        return recovered

    def retry_failed(self) -> int:
        with self._guard("retry_failed"):
            return store_mutations.retry_failed_mutations(self.conn)

    def close(self) -> None:
        self.conn.close()
