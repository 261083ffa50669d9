"""Unit tests for the application facade."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from docrag.documents.models import DocumentRecord, ProcessingStatus
from docrag.errors import NotFoundError, VectorIndexError
from docrag.ingestion.service import IncomingFile
from docrag.service import DocRagService

S = ProcessingStatus


def test_small_text_document_end_to_end(service, vector_index) -> None:
    text = "Refunds are available for thirty days after purchase."
    report = service.upload([IncomingFile("refunds.txt", "text/plain", text.encode())])
    doc_id = report.created[0].id

    service.run_indexing(doc_id)

    record = service.get_document(doc_id)
    assert record.processing_status is S.COMPLETED
    assert record.chunk_count == 1
    assert vector_index.records[f"{doc_id}-0"].metadata["content"] == text


def test_long_document_produces_overlapping_chunks(service, vector_index) -> None:
    text = "Section text goes on for a while. " * 150  # ~5,000 characters
    report = service.upload([IncomingFile("long.txt", "text/plain", text.encode())])
    doc_id = report.created[0].id

    service.run_indexing()

    record = service.get_document(doc_id)
    assert record.chunk_count >= 2
    contents = [vector_index.records[f"{doc_id}-{i}"].metadata["content"] for i in range(record.chunk_count)]
    assert all(len(c) <= 4000 for c in contents)
    assert contents[0][-300:] in contents[1]


def test_list_documents_newest_first_without_content(service, store) -> None:
    now = datetime.now(timezone.utc)
    store.add(DocumentRecord(id="old", filename="old.txt", upload_date=now - timedelta(days=1), extracted_content="x"))
    store.add(DocumentRecord(id="new", filename="new.txt", upload_date=now, extracted_content="y"))

    docs = service.list_documents()

    assert [d.id for d in docs] == ["new", "old"]
    assert all(d.extracted_content is None for d in docs)
    assert store.get("old").extracted_content == "x"


def test_delete_unknown_document(service) -> None:
    with pytest.raises(NotFoundError):
        service.delete_document("doc_missing")


def test_delete_keeps_record_when_vector_delete_fails(service, store, vector_index, monkeypatch) -> None:
    store.add(DocumentRecord(id="doc_1", filename="a.txt"))

    def fail(document_id: str) -> None:
        raise VectorIndexError("index unavailable")

    monkeypatch.setattr(vector_index, "delete_document", fail)
    with pytest.raises(VectorIndexError):
        service.delete_document("doc_1")
    assert store.get("doc_1") is not None


def test_fix_stuck_uses_configured_threshold(service, store) -> None:
    store.add(
        DocumentRecord(
            id="doc_recent",
            filename="recent.pdf",
            processing_status=S.EXTRACTING,
            upload_date=datetime.now(timezone.utc) - timedelta(seconds=30),
        )
    )
    assert service.fix_stuck().fixed == []
    assert store.get("doc_recent").processing_status is S.EXTRACTING


def test_health(service) -> None:
    status = service.health()
    assert status.ok is True
    assert status.vector_index is True
    assert status.time


def test_fix_stuck_with_zero_threshold(store, vector_index, embedding_client, mock_llm, app_settings) -> None:
    config = app_settings.model_copy(update={"stuck_after_seconds": 0})
    service = DocRagService(
        store=store, index=vector_index, embeddings=embedding_client, llm=mock_llm, config=config
    )
    store.add(
        DocumentRecord(
            id="doc_recent",
            filename="recent.pdf",
            processing_status=S.EXTRACTING,
            upload_date=datetime.now(timezone.utc) - timedelta(seconds=1),
        )
    )

    assert [d.id for d in service.fix_stuck().fixed] == ["doc_recent"]
    assert store.get("doc_recent").processing_status is S.ERROR
