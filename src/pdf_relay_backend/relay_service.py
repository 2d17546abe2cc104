"""
Upload-and-relay orchestration behind the upload endpoints.

This module drives one upload request end to end:
- Validating the incoming file parts
- Staging them on local disk
- Relaying them to the downstream workflow in a single call
- Removing the staged files on every exit path
- Shaping the success payload returned to the client

The RelayService class holds the business logic; the HTTP layer in ``main``
only parses the form and hands the parts over.
"""

from __future__ import annotations

import logging
import time
from typing import Any, List, Optional, Sequence

from fastapi import UploadFile

from .configuration import RelayConfig
from .errors import DownstreamRejected, NoFileProvided, NoFilesProvided, TooManyFiles
from .models import BatchUploadResponse, UploadResponse
from .relay_client import RelayClient, RelayRequest, RelayResult
from .staging import StagedFile, StagingStore
from .utils import epoch_millis, format_megabytes, format_seconds

logger = logging.getLogger(__name__)

DEFAULT_PROCESS_TYPE = "GG"
DEFAULT_CLIENT_ID = "INTELEC_SL"

# Keys the downstream workflow may use to report its job identifier
JOB_ID_KEYS = ("jobId", "job_id", "executionId")


def extract_job_id(body: Any) -> str:
    """
    Get the downstream job identifier, or generate a fallback.

    Args:
        body: Decoded downstream response body

    Returns:
        The first non-empty identifier found in the body, otherwise
        ``job_<epoch-millis>``
    """
    if isinstance(body, dict):
        for key in JOB_ID_KEYS:
            value = body.get(key)
            if value:
                return str(value)
    return f"job_{epoch_millis()}"


class RelayService:
    """
    Coordinates staging and relaying for single-file and batch uploads.

    Cleanup Guarantee:
        Every file staged by a request is removed before the request
        returns, whether the relay succeeds, is rejected by the downstream,
        or fails with an exception. Cleanup itself never raises.

    Attributes:
        config: Service configuration
        store: Staging directory manager
        client: Outbound relay client
    """

    def __init__(self, config: RelayConfig, store: StagingStore, client: RelayClient) -> None:
        self.config = config
        self.store = store
        self.client = client

    async def _relay(self, request: RelayRequest) -> RelayResult:
        result = await self.client.send(request)
        if not result.ok:
            logger.warning(f"Downstream rejected relay with status {result.status_code}")
            raise DownstreamRejected(result.status_code, result.body)
        return result

    async def relay_single(
        self,
        upload: Optional[UploadFile],
        process_type: Optional[str] = None,
        client_id: Optional[str] = None,
    ) -> UploadResponse:
        """
        Stage one PDF and relay it to the downstream workflow.

        Args:
            upload: The ``file`` form part, if any
            process_type: Workflow process type (default: "GG")
            client_id: Caller identifier forwarded as metadata (default: "INTELEC_SL")

        Returns:
            UploadResponse describing the relayed file

        Raises:
            NoFileProvided: If no file part was sent
            UnsupportedMediaType: If the part is not a PDF
            PayloadTooLarge: If the file exceeds the size limit
            DownstreamRejected: If the downstream answers with a non-2xx status
            DownstreamUnreachable: If the downstream cannot be reached
        """
        started = time.perf_counter()
        if upload is None or not upload.filename:
            raise NoFileProvided()

        staged = await self.store.accept(upload)
        logger.info(f"Upload received: {staged.original_name} ({format_megabytes(staged.size_bytes)} MB)")
        try:
            request = RelayRequest(
                files=[staged],
                process_type=process_type or DEFAULT_PROCESS_TYPE,
                client_id=client_id or DEFAULT_CLIENT_ID,
            )
            result = await self._relay(request)
        finally:
            self.store.discard([staged])

        processing_time = format_seconds(time.perf_counter() - started)
        logger.info(f"Relayed {staged.original_name} in {processing_time}")
        return UploadResponse(
            message=f"{staged.original_name} sent to the downstream workflow",
            file_name=staged.original_name,
            file_size=staged.size_bytes,
            file_size_mb=format_megabytes(staged.size_bytes),
            processing_time=processing_time,
            job_id=extract_job_id(result.body),
        )

    async def relay_batch(
        self,
        uploads: Optional[Sequence[UploadFile]],
        batch_id: Optional[str] = None,
        process_type: Optional[str] = None,
        client_id: Optional[str] = None,
    ) -> BatchUploadResponse:
        """
        Stage several PDFs and relay them together in one downstream call.

        The batch is all-or-nothing: every part is validated before any is
        staged, and one downstream failure fails the whole batch.

        Args:
            uploads: The ``files`` form parts, if any
            batch_id: Caller batch identifier (default: ``batch_<epoch-millis>``)
            process_type: Workflow process type (default: "GG")
            client_id: Caller identifier forwarded as metadata (default: "INTELEC_SL")

        Returns:
            BatchUploadResponse including the downstream response body

        Raises:
            NoFilesProvided: If no file parts were sent
            TooManyFiles: If more than ``max_batch_files`` parts were sent
            UnsupportedMediaType: If any part is not a PDF
            PayloadTooLarge: If any file exceeds the size limit
            DownstreamRejected: If the downstream answers with a non-2xx status
            DownstreamUnreachable: If the downstream cannot be reached
        """
        started = time.perf_counter()
        files = [upload for upload in uploads or [] if upload.filename]
        if not files:
            raise NoFilesProvided()
        if len(files) > self.config.max_batch_files:
            raise TooManyFiles(self.config.max_batch_files)
        for upload in files:
            self.store.check(upload)

        batch_id = batch_id or f"batch_{epoch_millis()}"
        logger.info(f"Batch {batch_id} received with {len(files)} file(s)")

        staged: List[StagedFile] = []
        try:
            for upload in files:
                staged.append(await self.store.accept(upload))
            for index, item in enumerate(staged, start=1):
                logger.info(f"  {index}. {item.original_name}")
            request = RelayRequest(
                files=staged,
                batch_id=batch_id,
                process_type=process_type or DEFAULT_PROCESS_TYPE,
                client_id=client_id or DEFAULT_CLIENT_ID,
            )
            result = await self._relay(request)
        finally:
            self.store.discard(staged)

        processing_time = format_seconds(time.perf_counter() - started)
        logger.info(f"Relayed batch {batch_id} in {processing_time}")
        return BatchUploadResponse(
            message=f"{len(staged)} file(s) sent to the downstream workflow in one batch",
            batch_id=batch_id,
            total_files=len(staged),
            processing_time=processing_time,
            downstream_response=result.body,
        )
