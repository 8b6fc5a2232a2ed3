"""Classification and routing of a completed run's output.

The first node output (mapping insertion order, i.e. the order keys appear in
the status response) is classified exactly once into a ``NodeOutput`` variant;
everything downstream matches on that variant instead of re-inspecting raw
fields.
"""

from __future__ import annotations

import base64
import binascii
import logging
from collections.abc import Callable
from typing import Any

from .curriculum import as_record, decode_structured_text, extract_identity, strip_extension
from .errors import NoOutputError, UnrecognizedFormatError
from .models import (
    DownloadLink,
    EncodedBinary,
    FileReference,
    GeneratedDocument,
    NodeOutput,
    StructuredRecord,
    UnrecognizedOutput,
    UploadedInput,
)
from .renderer import DocumentSynthesizer

logger = logging.getLogger(__name__)

# Leading bytes of document formats the workflow may return already encoded.
DOCUMENT_SIGNATURES: tuple[tuple[bytes, str, str], ...] = (
    (
        b"PK\x03\x04",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "docx",
    ),
    (b"%PDF", "application/pdf", "pdf"),
    (b"\xd0\xcf\x11\xe0", "application/msword", "doc"),
)


def select_node_output(output: dict[str, Any]) -> tuple[str, Any]:
    if not output:
        raise NoOutputError(details="Empty workflow response")
    node_name = next(iter(output))
    return node_name, output[node_name]


def classify_node_output(raw: Any) -> NodeOutput:
    """Resolve a raw node payload into one variant; the first matching rule wins."""
    if not isinstance(raw, dict) or not raw:
        return UnrecognizedOutput(available_fields=[])

    if raw.get("id") and raw.get("uri"):
        return FileReference(
            id=str(raw["id"]),
            uri=str(raw["uri"]),
            display_name=_optional_str(raw.get("name")),
            content_type=_optional_str(raw.get("content_type")),
        )

    text = raw.get("text")
    if isinstance(text, str) and text.strip():
        encoded = decode_document_base64(text)
        if encoded is not None:
            return encoded
        return StructuredRecord(text=text)

    return UnrecognizedOutput(available_fields=list(raw.keys()))


def decode_document_base64(text: str) -> EncodedBinary | None:
    """Return the decoded document when ``text`` is strict base64 of a known format."""
    compact = "".join(text.split())
    try:
        content = base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError):
        return None
    for signature, content_type, extension in DOCUMENT_SIGNATURES:
        if content.startswith(signature):
            return EncodedBinary(content=content, content_type=content_type, extension=extension)
    return None


def _optional_str(value: Any) -> str | None:
    return str(value) if value is not None else None


class ResultDispatcher:
    """Turns a run's output mapping into the artifact delivered to the caller."""

    def __init__(
        self,
        *,
        synthesizer: DocumentSynthesizer,
        file_base_url: str,
        clock_ms: Callable[[], int] | None = None,
    ) -> None:
        self.synthesizer = synthesizer
        self.file_base_url = file_base_url.rstrip("/")
        self.clock_ms = clock_ms

    def dispatch(
        self, output: dict[str, Any], upload: UploadedInput
    ) -> DownloadLink | GeneratedDocument:
        node_name, raw = select_node_output(output)
        node_output = classify_node_output(raw)
        logger.info("dispatch event=classified node=%s kind=%s", node_name, node_output.kind)

        match node_output:
            case FileReference():
                return self._relay_file(node_output, upload)
            case EncodedBinary():
                stem = strip_extension(upload.original_name)
                return GeneratedDocument(
                    content=node_output.content,
                    filename=f"AW CV {stem}.{node_output.extension}",
                    content_type=node_output.content_type,
                )
            case StructuredRecord():
                return self._synthesize(node_output)
            case UnrecognizedOutput():
                logger.warning(
                    "dispatch event=unrecognized node=%s fields=%s",
                    node_name,
                    node_output.available_fields,
                )
                raise UnrecognizedFormatError(available_fields=node_output.available_fields)

    def _relay_file(self, reference: FileReference, upload: UploadedInput) -> DownloadLink:
        download_url = f"{self.file_base_url}/{reference.id}"
        logger.info(
            "dispatch event=file_reference file_id=%s content_type=%s",
            reference.id,
            reference.content_type,
        )
        return DownloadLink(
            download_url=download_url,
            filename=strip_extension(upload.original_name),
        )

    def _synthesize(self, structured: StructuredRecord) -> GeneratedDocument:
        # A third encoding level survives decode as a str and is rejected by as_record.
        record = as_record(decode_structured_text(structured.text))
        identity = extract_identity(record, clock_ms=self.clock_ms)
        logger.info(
            "dispatch event=structured_record full_name=%s reference=%s",
            identity.full_name,
            identity.reference,
        )
        return self.synthesizer.synthesize(identity, record)
