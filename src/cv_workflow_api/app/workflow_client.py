"""HTTP client for the remote extraction workflow.

The remote API exposes two calls:
- ``POST {endpoint}`` starts a run with ``{"input": {<field>: <base64>}}``;
- ``GET {endpoint}/{run_id}`` returns the run status and, once completed,
  its node outputs.
Both authenticate with the ``X-API-KEY`` header.
"""

from __future__ import annotations

import base64
import json
import logging
from http.client import HTTPException
from typing import Any, Protocol
from urllib import error, request

from .config import Settings
from .errors import ConfigError, PollError, SubmissionError
from .models import RunStatus, UploadedInput, WorkflowRun

logger = logging.getLogger(__name__)


class WorkflowRunSource(Protocol):
    """Anything that can report the current state of a run."""

    def get_run(self, run_id: str) -> WorkflowRun: ...


class WorkflowClient:
    """Starts workflow runs and queries their status."""

    def __init__(
        self,
        *,
        workflow_id: str,
        api_token: str,
        base_url: str,
        input_field: str = "CV",
        timeout_s: float = 30.0,
    ) -> None:
        self.workflow_id = workflow_id
        self.api_token = api_token
        self.base_url = base_url.rstrip("/")
        self.input_field = input_field
        self.timeout_s = timeout_s

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/workflows/{self.workflow_id}/runs"

    def submit(self, upload: UploadedInput) -> str:
        """Start one run for ``upload`` and return the run id."""
        self._require_credentials()

        encoded = base64.b64encode(upload.content).decode("ascii")
        payload = {"input": {self.input_field: encoded}}
        logger.info(
            "workflow event=submit name=%s media_type=%s size=%d",
            upload.original_name,
            upload.media_type,
            len(upload.content),
        )
        req = request.Request(
            url=self.endpoint,
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={
                "X-API-KEY": self.api_token,
                "Content-Type": "application/json",
            },
        )
        try:
            with request.urlopen(req, timeout=self.timeout_s) as response:
                body = response.read().decode("utf-8")
        except error.HTTPError as exc:
            raw_error = exc.read().decode("utf-8", errors="replace")
            logger.error(
                "workflow event=submit_failed status=%s body=%s", exc.code, raw_error[:300]
            )
            details = "Authentication failed" if exc.code == 401 else "Service unavailable"
            raise SubmissionError(details=details, http_status=exc.code) from exc
        except (OSError, HTTPException, UnicodeDecodeError) as exc:
            # URLError, timeouts, resets and truncated or undecodable bodies.
            logger.error("workflow event=submit_failed reason=%s: %s", type(exc).__name__, exc)
            raise SubmissionError(details="Service unavailable") from exc

        try:
            parsed = json.loads(body)
        except json.JSONDecodeError as exc:
            raise SubmissionError(details="Workflow returned a non-JSON response") from exc
        run_id = parsed.get("id") if isinstance(parsed, dict) else None
        if not run_id:
            raise SubmissionError(details="Workflow response did not contain a run id")

        logger.info("workflow event=submitted run_id=%s", run_id)
        return str(run_id)

    def get_run(self, run_id: str) -> WorkflowRun:
        """Query the run once. Any transport failure is a ``PollError``."""
        self._require_credentials()

        req = request.Request(
            url=f"{self.endpoint}/{run_id}",
            method="GET",
            headers={"X-API-KEY": self.api_token},
        )
        try:
            with request.urlopen(req, timeout=self.timeout_s) as response:
                body = response.read().decode("utf-8")
        except error.HTTPError as exc:
            raw_error = exc.read().decode("utf-8", errors="replace")
            logger.error(
                "workflow event=status_failed run_id=%s status=%s body=%s",
                run_id,
                exc.code,
                raw_error[:300],
            )
            raise PollError(details="Status check failed") from exc
        except (OSError, HTTPException, UnicodeDecodeError) as exc:
            logger.error(
                "workflow event=status_failed run_id=%s reason=%s: %s",
                run_id,
                type(exc).__name__,
                exc,
            )
            raise PollError(details="Status check failed") from exc

        try:
            parsed = json.loads(body)
        except json.JSONDecodeError as exc:
            raise PollError(details="Status check returned a non-JSON response") from exc
        if not isinstance(parsed, dict):
            raise PollError(details=f"Unsupported status payload: {type(parsed).__name__}")
        return parse_run(parsed, run_id=run_id)

    def _require_credentials(self) -> None:
        missing = [
            name
            for name, value in (("workflow_id", self.workflow_id), ("api_token", self.api_token))
            if not value
        ]
        if missing:
            logger.error("workflow event=config_missing fields=%s", ",".join(missing))
            raise ConfigError(details=f"Missing workflow configuration: {', '.join(missing)}")


def parse_run(payload: dict[str, Any], *, run_id: str) -> WorkflowRun:
    """Map a raw status payload onto ``WorkflowRun``.

    Only ``completed`` and ``failed`` are terminal; every other remote status
    (queued, running, ...) is observed as pending.
    """
    output = payload.get("output")
    error_text = payload.get("error")
    return WorkflowRun(
        id=str(payload.get("id") or run_id),
        status=_normalize_status(payload.get("status")),
        output=output if isinstance(output, dict) else {},
        error=str(error_text) if error_text else None,
    )


def _normalize_status(raw_status: Any) -> RunStatus:
    status = str(raw_status or "").strip().lower()
    if status == "completed":
        return "completed"
    if status == "failed":
        return "failed"
    return "pending"


def build_workflow_client(settings: Settings) -> WorkflowClient:
    return WorkflowClient(
        workflow_id=settings.resolved_workflow_id(),
        api_token=settings.resolved_api_token(),
        base_url=settings.workflow_base_url,
        input_field=settings.workflow_input_field,
        timeout_s=settings.request_timeout_s,
    )
