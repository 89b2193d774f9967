from __future__ import annotations

import threading
from pathlib import Path

from fieldsync import queue_service
from fieldsync.store import QueueStore


def test_next_sequence_is_strictly_increasing(store: QueueStore) -> None:
    values = [store.next_sequence("R") for _ in range(5)]
    assert values == [1, 2, 3, 4, 5]
    assert store.current_sequence("R") == 5
    assert store.current_sequence("missing") == 0


def test_concurrent_queue_adds_get_distinct_sequences(tmp_path: Path) -> None:
    db_path = tmp_path / "queue.sqlite"
    QueueStore(db_path).close()
    sequences: list[int] = []
    errors: list[BaseException] = []
    lock = threading.Lock()

    def worker() -> None:
        store = QueueStore(db_path)
        try:
            for _ in range(10):
                mutation = queue_service.queue_add(store, "X", "R", 0, user_id="u1")
                with lock:
                    sequences.append(mutation.local_sequence)
        except BaseException as exc:
            with lock:
                errors.append(exc)
        finally:
            store.close()

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert sorted(sequences) == list(range(1, 41))

    store = QueueStore(db_path)
    try:
        assert store.count() == 40
        assert store.current_sequence("R") == 40
    finally:
        store.close()
