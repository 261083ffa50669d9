"""
Documents — lifecycle records, their store, and the status state machine.
"""

from docrag.documents.lifecycle import DocumentLifecycle, StuckSweepReport
from docrag.documents.models import DocumentRecord, ProcessingStatus, TextChunk
from docrag.documents.store import DocumentStoreBase, InMemoryDocumentStore

__all__ = [
    "DocumentLifecycle",
    "DocumentRecord",
    "DocumentStoreBase",
    "InMemoryDocumentStore",
    "ProcessingStatus",
    "StuckSweepReport",
    "TextChunk",
]
