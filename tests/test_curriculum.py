from __future__ import annotations

import json
import re

import pytest

from cv_workflow_api.app.curriculum import (
    as_record,
    clean_filename,
    decode_structured_text,
    document_filename,
    extract_identity,
    fallback_reference,
    reference_from_curriculum,
    strip_extension,
)
from cv_workflow_api.app.errors import ParseError
from cv_workflow_api.app.models import CandidateIdentity


def _record(**personal: object) -> dict[str, object]:
    return {"$metadata": {"personalInformation": personal}}


def test_decode_structured_text_unwraps_one_extra_encoding_level() -> None:
    record = _record(fullName="Jane Doe")

    assert decode_structured_text(json.dumps(record)) == record
    assert decode_structured_text(json.dumps(json.dumps(record))) == record


def test_triple_encoded_text_is_not_a_record() -> None:
    triple = json.dumps(json.dumps(json.dumps({"a": 1})))

    with pytest.raises(ParseError):
        as_record(decode_structured_text(triple))


def test_decode_structured_text_rejects_invalid_json() -> None:
    with pytest.raises(ParseError) as exc_info:
        decode_structured_text("{not json")

    assert exc_info.value.kind == "WORKFLOW_PARSE_ERROR"


def test_extract_identity_reads_personal_information() -> None:
    identity = extract_identity(_record(fullName=" Jane Doe ", cvReference="AW-1"))

    assert identity == CandidateIdentity(full_name="Jane Doe", reference="AW-1")
    assert document_filename(identity) == "AW CV Jane Doe AW-1.docx"


def test_extract_identity_defaults_when_fields_absent() -> None:
    identity = extract_identity({})

    assert identity.full_name == "Candidate"
    assert identity.reference == "Unknown"


def test_extract_identity_generates_reference_when_blank() -> None:
    identity = extract_identity(
        _record(fullName="Joao Pedro Silva", cvReference=""), clock_ms=lambda: 1700000012345
    )

    assert identity.reference == "AWJPS2345"
    assert document_filename(identity) == "AW CV Joao Pedro Silva AWJPS2345.docx"


def test_fallback_reference_uses_clock_suffix() -> None:
    assert fallback_reference("ana maria", clock_ms=lambda: 7) == "AWAM0007"
    assert re.fullmatch(r"AWJD\d{4}", fallback_reference("Jane Doe"))


def test_reference_from_curriculum_prefers_record_reference() -> None:
    record = _record(cvReference="AW-77")

    assert reference_from_curriculum(record, default="CAND") == "AW-77"
    assert reference_from_curriculum(json.dumps(record), default="CAND") == "AW-77"
    assert reference_from_curriculum("{broken", default="CAND") == "CAND"
    assert reference_from_curriculum({}, default="CAND") == "CAND"


@pytest.mark.parametrize(
    ("original", "expected"),
    [
        ("resume.pdf", "resume"),
        ("jane.doe.docx", "jane.doe"),
        ("noext", "noext"),
        (".hidden", ".hidden"),
    ],
)
def test_strip_extension(original: str, expected: str) -> None:
    assert strip_extension(original) == expected


def test_document_filename_collapses_control_characters() -> None:
    identity = CandidateIdentity(full_name="Jane\r\nSet-Cookie: x=1\t", reference="AW-1")

    assert document_filename(identity) == "AW CV Jane Set-Cookie: x=1 AW-1.docx"
    assert clean_filename("AW CV \x1b[31mRed\x7f.docx") == "AW CV [31mRed .docx"
