"""
Chunked persistence shared by the match batch job and the ingestion pipeline.

Writes are queued into chunks no larger than the store's atomic-write
ceiling. Each full chunk is committed before queuing continues, so a long
job commits incrementally: there is no rollback across chunks, and a failed
chunk is counted and reported while the job goes on.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .document_store import DocumentStore

logger = logging.getLogger(__name__)


@dataclass
class WriteReport:
    """Counts of committed and failed writes."""
    committed: int = 0
    failed: int = 0
    chunks_committed: int = 0
    failed_ids: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


class ChunkedWriter:
    """
    Buffered writer committing at most max_chunk_size writes per batch.

    Usage:
        with ChunkedWriter(store, 400) as writer:
            for doc in docs:
                writer.set("matches", doc["id"], doc)
        print(writer.report.committed)
    """

    def __init__(self, store: DocumentStore, max_chunk_size: Optional[int] = None):
        """
        Args:
            store: Target document store
            max_chunk_size: Chunk size, capped at store.max_batch_size
        """
        ceiling = store.max_batch_size
        self.store = store
        self.max_chunk_size = min(max_chunk_size or ceiling, ceiling)
        self.report = WriteReport()
        self._pending: List[Tuple[str, str, str, Optional[Dict[str, Any]], bool]] = []

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        self._pending.append(("set", collection, doc_id, data, merge))
        if len(self._pending) >= self.max_chunk_size:
            self.flush()

    def delete(self, collection: str, doc_id: str) -> None:
        self._pending.append(("delete", collection, doc_id, None, False))
        if len(self._pending) >= self.max_chunk_size:
            self.flush()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def flush(self) -> None:
        """Commit the pending chunk; failures are recorded, not raised."""
        if not self._pending:
            return

        chunk, self._pending = self._pending, []
        try:
            batch = self.store.batch()
            for op, collection, doc_id, data, merge in chunk:
                if op == "delete":
                    batch.delete(collection, doc_id)
                else:
                    batch.set(collection, doc_id, data, merge=merge)
            batch.commit()
        except Exception as e:
            logger.error(f"Chunk of {len(chunk)} writes failed: {e}")
            self.report.failed += len(chunk)
            self.report.failed_ids.extend(doc_id for _, _, doc_id, _, _ in chunk)
            self.report.errors.append(str(e))
            return

        self.report.committed += len(chunk)
        self.report.chunks_committed += 1
        logger.debug(f"Committed chunk of {len(chunk)} writes")

    def __enter__(self) -> "ChunkedWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.flush()
