"""FastAPI application exposing ingestion, indexing, search and chat as a REST API."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import lru_cache

from fastapi import APIRouter, BackgroundTasks, Depends, FastAPI, File, Request, Response, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from docrag.config import settings
from docrag.errors import DocRagError, ValidationError
from docrag.ingestion.service import IncomingFile
from docrag.service import DocRagService, build_service
from docrag.serving.schemas import (
    ChatRequest,
    ChatResponse,
    DocumentListResponse,
    EmbeddingRequest,
    EmbeddingResponse,
    FailureItem,
    FixedItem,
    FixStuckResponse,
    ProcessedItem,
    SearchRequest,
    SearchResponse,
    UploadErrorItem,
    UploadResponse,
)

logger = logging.getLogger(__name__)

NOTHING_TO_EMBED = 'No documents to embed (pass documentId or ensure status === "embedding")'


@lru_cache(maxsize=1)
def get_service() -> DocRagService:
    """Lazily build the production service (override in tests)."""
    return build_service()


router = APIRouter()


# ── Routes ────────────────────────────────────────────────────────────
@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok", "service": "docrag", "time": datetime.now(timezone.utc).isoformat()}


@router.get("/health/ready")
async def ready(service: DocRagService = Depends(get_service)) -> JSONResponse:
    """Readiness probe; checks the vector index."""
    status = await run_in_threadpool(service.health)
    return JSONResponse(
        {"ok": status.ok, "vectorIndex": status.vector_index, "time": status.time},
        status_code=200 if status.ok else 503,
    )


@router.post("/upload", status_code=201, response_model=UploadResponse)
async def upload(
    background_tasks: BackgroundTasks,
    files: list[UploadFile] | None = File(default=None),
    service: DocRagService = Depends(get_service),
):
    """Accept several files; each is validated and extracted independently.

    Successfully extracted documents are indexed in the background.
    """
    if not files:
        raise ValidationError('No files provided. Use field name "files".')

    incoming = [
        IncomingFile(
            filename=f.filename or "unknown",
            content_type=f.content_type or "",
            data=await f.read(),
        )
        for f in files
    ]

    def dispatch(document_id: str) -> None:
        background_tasks.add_task(service.run_indexing, document_id)

    report = await run_in_threadpool(service.upload, incoming, dispatch=dispatch)
    errors = [UploadErrorItem(filename=e.filename, reason=e.reason) for e in report.errors]

    if not report.created:
        return JSONResponse(
            {"error": "All files failed", "errors": [e.model_dump() for e in errors]},
            status_code=400,
        )
    return UploadResponse(created=[d.summary() for d in report.created], errors=errors)


@router.get("/documents", response_model=DocumentListResponse)
async def list_documents(service: DocRagService = Depends(get_service)):
    return DocumentListResponse(documents=service.list_documents())


@router.get("/documents/{document_id}")
async def get_document(document_id: str, service: DocRagService = Depends(get_service)):
    return service.get_document(document_id).model_dump(mode="json", by_alias=True)


@router.delete("/documents/{document_id}", status_code=204)
async def delete_document(document_id: str, service: DocRagService = Depends(get_service)) -> Response:
    await run_in_threadpool(service.delete_document, document_id)
    return Response(status_code=204)


@router.post("/embedding/create", response_model=EmbeddingResponse, response_model_exclude_none=True)
async def create_embeddings(
    body: EmbeddingRequest | None = None,
    service: DocRagService = Depends(get_service),
):
    """Index one document by id, or sweep every document in ``embedding``."""
    body = body or EmbeddingRequest()
    report = await run_in_threadpool(
        service.run_indexing,
        body.document_id,
        batch_size=body.batch_size,
        reindex=body.reindex,
    )
    if report.empty:
        return EmbeddingResponse(message=NOTHING_TO_EMBED)
    return EmbeddingResponse(
        processed=[ProcessedItem(id=p.id, chunks=p.chunks) for p in report.processed],
        failures=[FailureItem(id=f.id, reason=f.reason) for f in report.failures],
    )


@router.post("/search", response_model=SearchResponse)
async def search(body: SearchRequest, service: DocRagService = Depends(get_service)):
    q = body.q.strip()
    if not q:
        raise ValidationError("q (query) is required")
    results = await run_in_threadpool(
        service.search, q, body.k, document_ids=body.document_ids, file_types=body.file_types
    )
    return SearchResponse(q=q, k=body.k, results=results)


@router.post("/chat", response_model=ChatResponse)
async def chat(body: ChatRequest, service: DocRagService = Depends(get_service)):
    """Answer a question from the indexed documents, with numbered sources."""
    question = body.question.strip()
    if not question:
        raise ValidationError("question is required")
    answer = await run_in_threadpool(
        service.chat,
        question,
        body.k,
        document_ids=body.document_ids,
        file_types=body.file_types,
        history=body.history,
    )
    return ChatResponse(answer=answer.answer, sources=answer.sources)


@router.post("/fix-stuck", response_model=FixStuckResponse)
async def fix_stuck(service: DocRagService = Depends(get_service)):
    """Maintenance: force-fail documents stuck in extraction / embedding."""
    report = await run_in_threadpool(service.fix_stuck)
    return FixStuckResponse(
        message=report.message,
        fixed=[FixedItem(id=d.id, filename=d.filename) for d in report.fixed],
    )


# ── Error handling ────────────────────────────────────────────────────
async def _handle_docrag_error(request: Request, exc: DocRagError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        {"error": str(exc) or "Internal server error", "code": "internal_error"},
        status_code=500,
    )


def create_app() -> FastAPI:
    """Build the FastAPI application."""
    logging.basicConfig(level=settings.log_level)
    application = FastAPI(
        title="docrag API",
        version="0.1.0",
        description="Upload documents, index them, and ask questions answered with citations.",
    )
    application.include_router(router)
    application.add_exception_handler(DocRagError, _handle_docrag_error)
    application.add_exception_handler(Exception, _handle_unexpected)
    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8080)
