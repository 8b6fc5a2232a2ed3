"""Parsing of structured CV records returned by the extraction workflow.

The record nests candidate details under ``$metadata.personalInformation``.
Every fallback used when a field is missing is a named constant here.
"""

from __future__ import annotations

import json
import re
import time
from collections.abc import Callable
from pathlib import PurePath
from typing import Any

from .errors import ParseError
from .models import CandidateIdentity

METADATA_KEY = "$metadata"
PERSONAL_INFORMATION_KEY = "personalInformation"
DEFAULT_FULL_NAME = "Candidate"
DEFAULT_REFERENCE = "Unknown"
FALLBACK_REFERENCE_PREFIX = "AW"
DOCUMENT_FILENAME_PREFIX = "AW CV"

# C0 control characters and DEL; never allowed inside a header value.
_CONTROL_CHARACTERS = re.compile(r"\s*[\x00-\x1f\x7f]+\s*")


def decode_structured_text(text: str) -> Any:
    """Parse JSON text, unwrapping at most one extra level of string encoding.

    A payload encoded three times comes back as a ``str``; callers treat that
    as an unusable record rather than looping.
    """
    try:
        parsed = json.loads(text)
        if isinstance(parsed, str):
            parsed = json.loads(parsed)
    except (json.JSONDecodeError, TypeError) as exc:
        raise ParseError(details=str(exc)) from exc
    return parsed


def as_record(parsed: Any) -> dict[str, Any]:
    if not isinstance(parsed, dict):
        raise ParseError(
            details=f"Expected a JSON object for the CV record, got {type(parsed).__name__}"
        )
    return parsed


def personal_information(record: dict[str, Any]) -> dict[str, Any]:
    metadata = record.get(METADATA_KEY)
    if not isinstance(metadata, dict):
        return {}
    info = metadata.get(PERSONAL_INFORMATION_KEY)
    return info if isinstance(info, dict) else {}


def extract_identity(
    record: dict[str, Any],
    *,
    clock_ms: Callable[[], int] | None = None,
) -> CandidateIdentity:
    """Read ``fullName``/``cvReference``; generate a reference when it is blank.

    Absent fields take ``DEFAULT_FULL_NAME``/``DEFAULT_REFERENCE``. A reference
    that is present but empty is replaced by ``fallback_reference``.
    """
    info = personal_information(record)

    full_name = info.get("fullName")
    if not isinstance(full_name, str) or not full_name.strip():
        full_name = DEFAULT_FULL_NAME

    reference = info.get("cvReference", DEFAULT_REFERENCE)
    if reference is None:
        reference = DEFAULT_REFERENCE
    reference = str(reference).strip()
    if not reference:
        reference = fallback_reference(full_name, clock_ms=clock_ms)

    return CandidateIdentity(full_name=full_name.strip(), reference=reference)


def fallback_reference(full_name: str, *, clock_ms: Callable[[], int] | None = None) -> str:
    """``AW`` + initials of each name token + last four digits of the epoch-ms clock."""
    initials = "".join(token[0] for token in full_name.split(" ") if token).upper()
    now_ms = clock_ms() if clock_ms is not None else time.time_ns() // 1_000_000
    return f"{FALLBACK_REFERENCE_PREFIX}{initials}{str(now_ms)[-4:].zfill(4)}"


def reference_from_curriculum(curriculum: dict[str, Any] | str, default: str) -> str:
    """Best-effort ``cvReference`` lookup for the direct-render flow."""
    record: Any = curriculum
    if isinstance(curriculum, str):
        try:
            record = json.loads(curriculum)
        except json.JSONDecodeError:
            return default
    if not isinstance(record, dict):
        return default
    reference = personal_information(record).get("cvReference")
    if isinstance(reference, str) and reference.strip():
        return reference.strip()
    return default


def clean_filename(name: str) -> str:
    """Collapse control characters (CR, LF, tab, ...) to single spaces."""
    return _CONTROL_CHARACTERS.sub(" ", name).strip()


def document_filename(identity: CandidateIdentity) -> str:
    return clean_filename(
        f"{DOCUMENT_FILENAME_PREFIX} {identity.full_name} {identity.reference}.docx"
    )


def reference_document_filename(reference: str) -> str:
    return clean_filename(f"{DOCUMENT_FILENAME_PREFIX} {reference}.docx")


def strip_extension(original_name: str) -> str:
    name = PurePath(original_name).name
    stem, dot, _ = name.rpartition(".")
    return stem if dot and stem else name
