"""FastAPI application wiring for the CV workflow service.

Terms used in this file:
- Lifespan: startup/shutdown hook; the DOCX renderer is initialized there,
  before the first request is accepted.
- app.state: shared runtime objects (settings, renderer, pipeline).
- Exception handler: turns every ``CvWorkflowError`` into the JSON error body
  ``{success, message, errorType, details}``.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import unicodedata
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from urllib.parse import quote

from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, Response

from .app.config import Settings, get_settings
from .app.curriculum import clean_filename
from .app.dispatcher import ResultDispatcher
from .app.errors import CvWorkflowError, UnknownError
from .app.models import (
    DownloadLink,
    GenerateCurriculumRequest,
    GenerateCurriculumResponse,
    GeneratedDocument,
    UploadLinkResponse,
)
from .app.pipeline import CvPipeline
from .app.polling import build_poller
from .app.renderer import DocumentSynthesizer, DocxRenderer
from .app.ui import render_homepage
from .app.uploads import validate_upload
from .app.workflow_client import WorkflowClient, build_workflow_client

logger = logging.getLogger(__name__)


def create_app(
    *,
    settings_override: Settings | None = None,
    workflow_client: WorkflowClient | None = None,
    renderer: DocxRenderer | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> FastAPI:
    """Application factory.

    Collaborators can be injected so tests run without network access or real
    waiting between polls.
    """
    settings = settings_override or get_settings()
    _configure_logging(settings.log_level)

    renderer = renderer or DocxRenderer(settings.template_path)
    synthesizer = DocumentSynthesizer(renderer)
    client = workflow_client or build_workflow_client(settings)
    poller = build_poller(settings, client, sleep=sleep)
    dispatcher = ResultDispatcher(synthesizer=synthesizer, file_base_url=settings.file_base_url)
    pipeline = CvPipeline(client=client, poller=poller, dispatcher=dispatcher)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # A failure here aborts startup: no request is served without a renderer.
        renderer.initialize()
        logger.info(
            "app event=started service=%s poll_interval_s=%s poll_max_attempts=%d",
            settings.app_name,
            settings.poll_interval_s,
            settings.poll_max_attempts,
        )
        yield

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.settings = settings
    app.state.renderer = renderer
    app.state.synthesizer = synthesizer
    app.state.pipeline = pipeline

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )

    @app.exception_handler(CvWorkflowError)
    async def handle_workflow_error(_: Request, exc: CvWorkflowError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.get("/", response_class=HTMLResponse)
    def home() -> str:
        return render_homepage(app_name=settings.app_name, max_file_size=settings.max_file_size)

    @app.get("/api/health")
    def health() -> dict[str, str]:
        return {
            "status": "OK",
            "service": settings.app_name,
            "renderer": "ready" if app.state.renderer.is_ready else "not_ready",
        }

    # Polls wait on the event loop; blocking steps run in the threadpool
    @app.post("/api/cv/upload", response_model=None)
    async def upload_cv(cv: UploadFile | None = File(default=None)) -> Response:
        upload = validate_upload(
            content=await cv.read() if cv is not None else None,
            media_type=cv.content_type if cv is not None else None,
            original_name=cv.filename if cv is not None else None,
            max_file_size=settings.max_file_size,
        )
        logger.info(
            "upload event=accepted name=%s size=%d", upload.original_name, len(upload.content)
        )
        try:
            result = await app.state.pipeline.process_upload(upload)
        except CvWorkflowError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("upload event=unexpected_error name=%s", upload.original_name)
            raise UnknownError(details=str(exc)) from exc

        if isinstance(result, DownloadLink):
            body = UploadLinkResponse(download_url=result.download_url, file_name=result.filename)
            return JSONResponse(content=body.model_dump(by_alias=True))
        return _document_response(result)

    @app.post("/api/curriculum/generate", response_model=GenerateCurriculumResponse)
    def generate_curriculum(payload: GenerateCurriculumRequest) -> GenerateCurriculumResponse:
        _require_curriculum(payload)
        content = app.state.synthesizer.render_curriculum(
            payload.candidate_identification, payload.curriculum
        )
        return GenerateCurriculumResponse(
            base64=base64.b64encode(content).decode("ascii"),
            candidate_identification=payload.candidate_identification,
        )

    @app.post("/api/curriculum/generate_file", response_model=None)
    def generate_curriculum_file(payload: GenerateCurriculumRequest) -> Response:
        _require_curriculum(payload)
        document = app.state.synthesizer.generate_for_identification(
            payload.candidate_identification, payload.curriculum
        )
        return _document_response(document)

    return app


def content_disposition(filename: str) -> str:
    """Attachment header; non-ASCII names get an RFC 5987 ``filename*`` as well."""
    safe_name = clean_filename(filename).replace('"', "'")
    ascii_name = (
        unicodedata.normalize("NFKD", safe_name).encode("ascii", "ignore").decode("ascii")
    )
    if ascii_name == safe_name:
        return f'attachment; filename="{safe_name}"'
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(safe_name)}"


def _document_response(document: GeneratedDocument) -> Response:
    logger.info(
        "delivery event=document filename=%s size=%d", document.filename, len(document.content)
    )
    return Response(
        content=document.content,
        media_type=document.content_type,
        headers={
            "Content-Disposition": content_disposition(document.filename),
            "Content-Length": str(len(document.content)),
        },
    )


def _require_curriculum(payload: GenerateCurriculumRequest) -> None:
    if not payload.candidate_identification.strip() or not payload.has_curriculum():
        raise HTTPException(
            status_code=400,
            detail="Missing required fields: candidateIdentification and curriculum",
        )


def _configure_logging(level: str) -> None:
    root = logging.getLogger()
    if root.handlers:
        return
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


# Module-level app for `uvicorn cv_workflow_api.main:app`.
app = create_app()
