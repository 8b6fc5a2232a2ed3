"""Pydantic models shared across the upload gate, workflow client, dispatcher and API.

Terms used in this file:
- Run: one invocation of the remote extraction workflow.
- Node output: the payload one named workflow stage produced for a completed run.
- Frozen model: instances cannot be mutated after construction.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DOCX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

# Remote run lifecycle as observed through polling.
RunStatus = Literal["pending", "completed", "failed"]


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class UploadedInput(FrozenModel):
    """Raw upload handed over by the upload gate."""

    content: bytes
    media_type: str
    original_name: str


class WorkflowRun(BaseModel):
    """Snapshot of a remote run returned by one status query."""

    id: str
    status: RunStatus
    # Node name -> raw node payload, in the order the remote system returned them.
    output: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in ("completed", "failed")


class FileReference(FrozenModel):
    kind: Literal["file_reference"] = "file_reference"
    id: str
    uri: str
    display_name: str | None = None
    content_type: str | None = None


class EncodedBinary(FrozenModel):
    kind: Literal["encoded_binary"] = "encoded_binary"
    content: bytes
    content_type: str
    extension: str


class StructuredRecord(FrozenModel):
    kind: Literal["structured_record"] = "structured_record"
    text: str


class UnrecognizedOutput(FrozenModel):
    kind: Literal["unrecognized"] = "unrecognized"
    available_fields: list[str] = Field(default_factory=list)


NodeOutput = Annotated[
    FileReference | EncodedBinary | StructuredRecord | UnrecognizedOutput,
    Field(discriminator="kind"),
]


class CandidateIdentity(FrozenModel):
    full_name: str
    reference: str


class GeneratedDocument(FrozenModel):
    """Final artifact handed to delivery; never mutated after creation."""

    content: bytes
    filename: str
    content_type: str = DOCX_CONTENT_TYPE


class DownloadLink(FrozenModel):
    """Remote file produced by the workflow itself; relayed as a URL."""

    download_url: str
    filename: str


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UploadLinkResponse(CamelModel):
    """Response body for POST /api/cv/upload when the workflow returns a file link."""

    success: bool = True
    message: str = "CV processed successfully!"
    download_url: str
    file_name: str


class GenerateCurriculumRequest(CamelModel):
    """Request body for the direct-render endpoints."""

    candidate_identification: str
    # Either the curriculum object itself or its JSON string encoding.
    curriculum: dict[str, Any] | str

    def has_curriculum(self) -> bool:
        if isinstance(self.curriculum, str):
            return bool(self.curriculum.strip())
        return bool(self.curriculum)


class GenerateCurriculumResponse(CamelModel):
    """Response body for POST /api/curriculum/generate."""

    success: bool = True
    base64: str
    candidate_identification: str

