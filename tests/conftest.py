from __future__ import annotations

import json
from collections.abc import Iterator
from io import BytesIO
from pathlib import Path
from typing import Any

import pytest
from docx import Document
from fastapi.testclient import TestClient

from cv_workflow_api.app.config import Settings
from cv_workflow_api.app.models import UploadedInput, WorkflowRun

TEMPLATE_LINES = (
    "Name: {{ metadata.personalInformation.fullName }}",
    "Reference: {{ candidateIdentification }}",
    "{% if metadata.personalInformation.phone is not empty_or_whitespace %}"
    "Phone: {{ metadata.personalInformation.phone }}{% endif %}",
    "Skills: {% for skill in skills %}{{ skill }};{% endfor %}",
    "Started: {{ startDate | month_year }}",
    "Summary",
    "{{ summary | text_with_breaks }}",
)

SAMPLE_RECORD: dict[str, Any] = {
    "$metadata": {
        "personalInformation": {
            "fullName": "Jane Doe",
            "cvReference": "AW-1",
            "phone": "",
        }
    },
    "skills": ["Python", "SQL"],
    "startDate": "2021-03-01",
    "summary": "line one\nline two",
}


class FakeWorkflowClient:
    """In-memory double for WorkflowClient: replays scripted run snapshots."""

    def __init__(self, runs: list[WorkflowRun], run_id: str = "run-1") -> None:
        self.runs = runs
        self.run_id = run_id
        self.submitted: list[UploadedInput] = []
        self.status_calls = 0

    def submit(self, upload: UploadedInput) -> str:
        self.submitted.append(upload)
        return self.run_id

    def get_run(self, run_id: str) -> WorkflowRun:
        assert run_id == self.run_id
        index = min(self.status_calls, len(self.runs) - 1)
        self.status_calls += 1
        return self.runs[index]


class SleepRecorder:
    """Awaitable stand-in for ``asyncio.sleep`` that records the requested waits."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


async def no_wait(_: float) -> None:
    return None


def pending_run(run_id: str = "run-1") -> WorkflowRun:
    return WorkflowRun(id=run_id, status="pending")


def completed_run(output: dict[str, Any], run_id: str = "run-1") -> WorkflowRun:
    return WorkflowRun(id=run_id, status="completed", output=output)


def record_output(record: dict[str, Any], node: str = "Extract CV") -> dict[str, Any]:
    return {node: {"text": json.dumps(record)}}


def build_template(path: Path, lines: tuple[str, ...] = TEMPLATE_LINES) -> Path:
    document = Document()
    for line in lines:
        document.add_paragraph(line)
    document.save(str(path))
    return path


def paragraph_texts(content: bytes) -> list[str]:
    return [paragraph.text for paragraph in Document(BytesIO(content)).paragraphs]


@pytest.fixture
def template_path(tmp_path: Path) -> Path:
    return build_template(tmp_path / "cv_template.docx")


@pytest.fixture
def settings(template_path: Path) -> Settings:
    return Settings(
        workflow_id="wf-123",
        api_token="secret-token",
        workflow_base_url="https://workflows.example/api/v1",
        file_base_url="https://workflows.example/file",
        poll_interval_s=5.0,
        poll_max_attempts=60,
        max_file_size=1024,
        template_path=template_path,
    )


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def fake_workflow() -> FakeWorkflowClient:
    return FakeWorkflowClient([completed_run(record_output(SAMPLE_RECORD))])


@pytest.fixture
def client(
    settings: Settings,
    fake_workflow: FakeWorkflowClient,
    sleep_recorder: SleepRecorder,
) -> Iterator[TestClient]:
    from cv_workflow_api.main import create_app

    app = create_app(
        settings_override=settings,
        workflow_client=fake_workflow,
        sleep=sleep_recorder,
    )
    with TestClient(app) as test_client:
        yield test_client
