from __future__ import annotations

import logging

from fastapi.concurrency import run_in_threadpool

from .dispatcher import ResultDispatcher
from .models import DownloadLink, GeneratedDocument, UploadedInput
from .polling import WorkflowPoller
from .workflow_client import WorkflowClient

logger = logging.getLogger(__name__)


class CvPipeline:
    """Runs one upload through submit -> poll -> dispatch.

    Holds only collaborators; each call owns its run id, so concurrent
    requests never share mutable state. Blocking steps (HTTP calls and
    rendering) run in the threadpool one at a time; the waits between polls
    are awaited on the event loop.
    """

    def __init__(
        self,
        *,
        client: WorkflowClient,
        poller: WorkflowPoller,
        dispatcher: ResultDispatcher,
    ) -> None:
        self.client = client
        self.poller = poller
        self.dispatcher = dispatcher

    async def process_upload(self, upload: UploadedInput) -> DownloadLink | GeneratedDocument:
        run_id = await run_in_threadpool(self.client.submit, upload)
        logger.info(
            "pipeline event=polling run_id=%s interval_s=%s max_attempts=%d",
            run_id,
            self.poller.interval_s,
            self.poller.max_attempts,
        )
        output = await self.poller.wait_for_output(run_id)
        result = await run_in_threadpool(self.dispatcher.dispatch, output, upload)
        logger.info(
            "pipeline event=completed run_id=%s result=%s filename=%s",
            run_id,
            type(result).__name__,
            result.filename,
        )
        return result
