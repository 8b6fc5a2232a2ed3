"""DOCX synthesis from structured CV records.

``DocxRenderer`` owns the templating engine. It is built once per process by
``create_app`` and must be initialized before the first render:

    renderer = DocxRenderer(template_path)
    renderer.initialize()      # builds the Jinja environment with helpers
    renderer.render(data)      # safe to call from concurrent requests

``initialize`` is idempotent; nothing re-initializes the renderer while
requests are in flight. ``DocumentSynthesizer`` adds naming rules on top.
"""

from __future__ import annotations

import logging
import threading
from io import BytesIO
from pathlib import Path
from typing import Any

from docxtpl import DocxTemplate
from jinja2 import ChainableUndefined, Environment

from .curriculum import (
    METADATA_KEY,
    as_record,
    decode_structured_text,
    document_filename,
    reference_document_filename,
    reference_from_curriculum,
)
from .errors import ParseError, RenderError
from .helpers import register_helpers
from .models import DOCX_CONTENT_TYPE, CandidateIdentity, GeneratedDocument

logger = logging.getLogger(__name__)


class DocxRenderer:
    """Merges data into a DOCX template using docxtpl (Jinja2 syntax)."""

    def __init__(self, template_path: Path) -> None:
        self.template_path = Path(template_path)
        self._env: Environment | None = None
        self._lock = threading.Lock()

    @property
    def is_ready(self) -> bool:
        return self._env is not None

    def initialize(self) -> None:
        with self._lock:
            if self._env is not None:
                return
            env = Environment(autoescape=True, undefined=ChainableUndefined)
            self._env = register_helpers(env)
        logger.info("renderer event=initialized template=%s", self.template_path)

    def render(self, data: dict[str, Any]) -> bytes:
        env = self._env
        if env is None:
            raise RenderError(details="Renderer used before initialization")
        if not self.template_path.is_file():
            raise RenderError(details=f"Template file not found: {self.template_path.name}")

        template_bytes = self.template_path.read_bytes()
        try:
            template = DocxTemplate(BytesIO(template_bytes))
            template.render(data, env, autoescape=True)
            buffer = BytesIO()
            template.save(buffer)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "renderer event=render_failed template=%s error=%s",
                self.template_path.name,
                exc,
            )
            raise RenderError(details=f"{type(exc).__name__}: {exc}") from exc
        return buffer.getvalue()


def build_merge_data(candidate_identification: str, record: dict[str, Any]) -> dict[str, Any]:
    """Template context: the record plus ``candidateIdentification``.

    ``$metadata`` is not a valid Jinja name, so it is mirrored as ``metadata``.
    """
    data: dict[str, Any] = {"candidateIdentification": candidate_identification, **record}
    if METADATA_KEY in record and "metadata" not in record:
        data["metadata"] = record[METADATA_KEY]
    return data


class DocumentSynthesizer:
    def __init__(self, renderer: DocxRenderer) -> None:
        self.renderer = renderer

    def synthesize(self, identity: CandidateIdentity, record: dict[str, Any]) -> GeneratedDocument:
        """Render a workflow record; filename ``AW CV <fullName> <reference>.docx``."""
        logger.info(
            "renderer event=synthesize reference=%s keys=%s",
            identity.reference,
            sorted(record.keys()),
        )
        content = self.renderer.render(build_merge_data(identity.reference, record))
        return GeneratedDocument(
            content=content,
            filename=document_filename(identity),
            content_type=DOCX_CONTENT_TYPE,
        )

    def render_curriculum(
        self, candidate_identification: str, curriculum: dict[str, Any] | str
    ) -> bytes:
        if isinstance(curriculum, str):
            try:
                record = as_record(decode_structured_text(curriculum))
            except ParseError as exc:
                raise RenderError(
                    "Invalid curriculum JSON format", details=exc.details
                ) from exc
        else:
            record = curriculum
        return self.renderer.render(build_merge_data(candidate_identification, record))

    def generate_for_identification(
        self, candidate_identification: str, curriculum: dict[str, Any] | str
    ) -> GeneratedDocument:
        """Direct-render flow; filename ``AW CV <reference>.docx``."""
        content = self.render_curriculum(candidate_identification, curriculum)
        reference = reference_from_curriculum(curriculum, default=candidate_identification)
        return GeneratedDocument(
            content=content,
            filename=reference_document_filename(reference),
            content_type=DOCX_CONTENT_TYPE,
        )
