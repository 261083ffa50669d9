"""KServe custom model runtime exposing grounded question answering."""

from __future__ import annotations

import logging
from typing import Any

import kserve

from docrag.answer.state import ChatTurn
from docrag.config import settings
from docrag.errors import DocRagError
from docrag.service import DocRagService, build_service

logger = logging.getLogger(__name__)


class DocRagModel(kserve.Model):
    """KServe-compatible model that answers questions from the indexed documents.

    This class implements the ``predict`` interface expected by KServe
    so the query path can be deployed as an ``InferenceService``.
    """

    def __init__(self, name: str = "docrag", service: DocRagService | None = None) -> None:
        super().__init__(name)
        self.service = service
        self.ready = service is not None

    def load(self) -> None:
        """Build the service (called once at startup)."""
        if self.service is None:
            self.service = build_service()
        self.ready = True

    def predict(self, payload: dict[str, Any], headers: dict[str, str] | None = None) -> dict:
        """Run inference — called on every request.

        Parameters
        ----------
        payload:
            ``{"instances": [{"question": "...", "k": 5, "documentIds": [...],
            "fileTypes": [...], "history": [...]}]}``.
        headers:
            Optional HTTP headers.

        Returns
        -------
        dict
            ``{"predictions": [{"answer": "...", "sources": [...]}]}``; an
            instance that fails carries ``{"error": "..."}`` instead.
        """
        instances = payload.get("instances", [])
        predictions = []

        for instance in instances:
            question = (instance.get("question") or "").strip()
            if not question:
                predictions.append({"error": "question is required"})
                continue
            try:
                answer = self.service.chat(
                    question,
                    instance.get("k"),
                    document_ids=instance.get("documentIds"),
                    file_types=instance.get("fileTypes"),
                    history=[ChatTurn(**turn) for turn in instance.get("history") or []],
                )
            except DocRagError as exc:
                logger.warning("Prediction failed: %s", exc.message)
                predictions.append({"error": exc.message})
                continue
            predictions.append(answer.model_dump(mode="json", by_alias=True))

        return {"predictions": predictions}


if __name__ == "__main__":
    logging.basicConfig(level=settings.log_level)
    model = DocRagModel()
    model.load()
    kserve.ModelServer().start([model])
