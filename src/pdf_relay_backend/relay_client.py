"""Client that forwards staged PDFs to the downstream workflow webhook."""

from __future__ import annotations

import base64
import logging
from contextlib import ExitStack
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import httpx

from .errors import DownstreamTimeout, DownstreamUnreachable, InternalStagingFailure
from .staging import PDF_CONTENT_TYPE, StagedFile
from .utils import format_megabytes

logger = logging.getLogger(__name__)

SINGLE_UPLOADER_TAG = "backend-api"
BATCH_UPLOADER_TAG = "backend-api-batch"


@dataclass
class RelayRequest:
    """One outbound relay: a single file, or a batch when batch_id is set."""

    files: List[StagedFile]
    process_type: str
    client_id: str
    batch_id: Optional[str] = None

    @property
    def total_files(self) -> int:
        return len(self.files)

    @property
    def is_batch(self) -> bool:
        return self.batch_id is not None


@dataclass
class RelayResult:
    status_code: int
    body: Any

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def decode_body(response: httpx.Response) -> Any:
    """Turn a downstream response body into something JSON-serializable."""
    if not response.content:
        return None
    content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
    if "json" in content_type:
        try:
            return response.json()
        except ValueError:
            return response.text
    if not content_type or content_type.startswith("text/"):
        return response.text
    return {
        "contentType": content_type,
        "encoding": "base64",
        "data": base64.b64encode(response.content).decode("ascii"),
    }


class RelayClient:
    """
    Posts relay requests to the downstream webhook as multipart/form-data.

    Exactly one POST is made per request and nothing is retried. Every HTTP
    status the downstream answers with is returned as a RelayResult; only
    transport failures raise.
    """

    def __init__(
        self,
        webhook_url: str,
        single_timeout: float = 120.0,
        batch_timeout: float = 600.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.webhook_url = webhook_url
        self.single_timeout = single_timeout
        self.batch_timeout = batch_timeout
        self._transport = transport

    def build_fields(self, request: RelayRequest) -> Dict[str, str]:
        fields = {
            "process_type": request.process_type,
            "client_id": request.client_id,
            "upload_timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if request.is_batch:
            fields.update(
                batch_id=str(request.batch_id),
                total_files=str(request.total_files),
                uploaded_by=BATCH_UPLOADER_TAG,
            )
        else:
            fields.update(
                file_size_mb=format_megabytes(request.files[0].size_bytes),
                uploaded_by=SINGLE_UPLOADER_TAG,
            )
        return fields

    @staticmethod
    def part_names(request: RelayRequest) -> List[str]:
        if not request.is_batch:
            return ["file"]
        return [f"file_{index}" for index in range(1, request.total_files + 1)]

    async def send(self, request: RelayRequest) -> RelayResult:
        """
        Perform the relay call.

        Files are passed to httpx as open handles so their content is streamed
        in chunks instead of being read into memory up front.

        Raises:
            DownstreamTimeout: If the downstream does not answer in time
            DownstreamUnreachable: On connection, DNS or protocol failures
        """
        timeout = self.batch_timeout if request.is_batch else self.single_timeout
        fields = self.build_fields(request)

        with ExitStack() as stack:
            parts: List[Tuple[str, Tuple[str, Any, str]]] = []
            for name, staged in zip(self.part_names(request), request.files):
                try:
                    handle = stack.enter_context(staged.path.open("rb"))
                except OSError as exc:
                    raise InternalStagingFailure(f"Staged file {staged.generated_name} is unreadable: {exc}") from exc
                parts.append((name, (staged.original_name, handle, PDF_CONTENT_TYPE)))

            logger.info(f"Relaying {request.total_files} file(s) to downstream (timeout {timeout:.0f}s)")
            try:
                async with httpx.AsyncClient(timeout=httpx.Timeout(timeout), transport=self._transport) as client:
                    response = await client.post(self.webhook_url, data=fields, files=parts)
            except httpx.TimeoutException as exc:
                raise DownstreamTimeout(f"Downstream timed out after {timeout:.0f}s: {exc}") from exc
            except httpx.TransportError as exc:
                raise DownstreamUnreachable(f"Downstream unreachable: {exc}") from exc

        logger.info(f"Downstream answered {response.status_code}")
        return RelayResult(status_code=response.status_code, body=decode_body(response))
