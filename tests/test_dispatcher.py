from __future__ import annotations

import base64
import json
from pathlib import Path

import pytest

from conftest import SAMPLE_RECORD, paragraph_texts
from cv_workflow_api.app.dispatcher import (
    ResultDispatcher,
    classify_node_output,
    decode_document_base64,
    select_node_output,
)
from cv_workflow_api.app.errors import NoOutputError, ParseError, UnrecognizedFormatError
from cv_workflow_api.app.models import (
    DownloadLink,
    EncodedBinary,
    FileReference,
    GeneratedDocument,
    StructuredRecord,
    UnrecognizedOutput,
    UploadedInput,
)
from cv_workflow_api.app.renderer import DocumentSynthesizer, DocxRenderer

UPLOAD = UploadedInput(content=b"%PDF-1.4", media_type="application/pdf", original_name="jane.pdf")


@pytest.fixture
def dispatcher(template_path: Path) -> ResultDispatcher:
    renderer = DocxRenderer(template_path)
    renderer.initialize()
    return ResultDispatcher(
        synthesizer=DocumentSynthesizer(renderer),
        file_base_url="https://files.example/file/",
        clock_ms=lambda: 1234567890,
    )


def test_select_node_output_takes_first_node_in_order() -> None:
    output = {"Second": {"text": "b"}, "First": {"text": "a"}}

    assert select_node_output(output) == ("Second", {"text": "b"})


def test_select_node_output_rejects_empty_output() -> None:
    with pytest.raises(NoOutputError) as exc_info:
        select_node_output({})

    assert exc_info.value.details == "Empty workflow response"


def test_file_reference_wins_over_text() -> None:
    classified = classify_node_output(
        {"id": "f-1", "uri": "s3://bucket/f-1", "text": json.dumps(SAMPLE_RECORD)}
    )

    assert isinstance(classified, FileReference)
    assert classified.id == "f-1"


def test_text_with_document_signature_is_encoded_binary() -> None:
    encoded = base64.b64encode(b"PK\x03\x04rest-of-docx").decode("ascii")

    classified = classify_node_output({"text": encoded})

    assert isinstance(classified, EncodedBinary)
    assert classified.extension == "docx"
    assert classified.content == b"PK\x03\x04rest-of-docx"


def test_plain_json_text_is_structured_record() -> None:
    classified = classify_node_output({"text": json.dumps(SAMPLE_RECORD)})

    assert isinstance(classified, StructuredRecord)


@pytest.mark.parametrize(
    ("raw", "fields"),
    [
        ({"summary": "x", "score": 3}, ["summary", "score"]),
        ({"text": "   "}, ["text"]),
        ({"id": "only-id"}, ["id"]),
        ("not a mapping", []),
        ({}, []),
    ],
)
def test_unrecognized_output_lists_fields(raw: object, fields: list[str]) -> None:
    classified = classify_node_output(raw)

    assert isinstance(classified, UnrecognizedOutput)
    assert classified.available_fields == fields


def test_decode_document_base64_ignores_unknown_content() -> None:
    assert decode_document_base64(base64.b64encode(b"hello").decode("ascii")) is None
    assert decode_document_base64("not base64 at all!") is None


def test_dispatch_relays_file_reference_as_link(dispatcher: ResultDispatcher) -> None:
    result = dispatcher.dispatch({"Docx": {"id": "file-9", "uri": "s3://x"}}, UPLOAD)

    assert result == DownloadLink(download_url="https://files.example/file/file-9", filename="jane")


def test_dispatch_returns_encoded_binary_as_document(dispatcher: ResultDispatcher) -> None:
    encoded = base64.b64encode(b"%PDF-1.7 body").decode("ascii")

    result = dispatcher.dispatch({"Export": {"text": encoded}}, UPLOAD)

    assert isinstance(result, GeneratedDocument)
    assert result.filename == "AW CV jane.pdf"
    assert result.content_type == "application/pdf"
    assert result.content == b"%PDF-1.7 body"


def test_dispatch_synthesizes_structured_record(dispatcher: ResultDispatcher) -> None:
    result = dispatcher.dispatch({"Extract": {"text": json.dumps(SAMPLE_RECORD)}}, UPLOAD)

    assert isinstance(result, GeneratedDocument)
    assert result.filename == "AW CV Jane Doe AW-1.docx"
    assert "Name: Jane Doe" in paragraph_texts(result.content)


def test_dispatch_accepts_double_encoded_record(dispatcher: ResultDispatcher) -> None:
    text = json.dumps(json.dumps(SAMPLE_RECORD))

    result = dispatcher.dispatch({"Extract": {"text": text}}, UPLOAD)

    assert result.filename == "AW CV Jane Doe AW-1.docx"


def test_dispatch_generates_reference_for_blank_cv_reference(
    dispatcher: ResultDispatcher,
) -> None:
    record = {"$metadata": {"personalInformation": {"fullName": "Jane Doe", "cvReference": ""}}}

    result = dispatcher.dispatch({"Extract": {"text": json.dumps(record)}}, UPLOAD)

    assert result.filename == "AW CV Jane Doe AWJD7890.docx"


def test_dispatch_rejects_triple_encoded_record(dispatcher: ResultDispatcher) -> None:
    text = json.dumps(json.dumps(json.dumps(SAMPLE_RECORD)))

    with pytest.raises(ParseError):
        dispatcher.dispatch({"Extract": {"text": text}}, UPLOAD)


def test_dispatch_reports_unrecognized_fields(dispatcher: ResultDispatcher) -> None:
    with pytest.raises(UnrecognizedFormatError) as exc_info:
        dispatcher.dispatch({"Extract": {"summary": "x", "score": 1}}, UPLOAD)

    assert exc_info.value.available_fields == ["summary", "score"]
    assert exc_info.value.details == (
        "Unexpected response format; available fields: ['summary', 'score']"
    )
