"""Async HTTP client for the AssemblyAI v2 transcription API.

WHY: Caption Studio needs to upload a media file, create a transcription
job, poll it until it reaches a terminal state, fetch the word timeline,
and delete the transcript afterwards. This module keeps the whole async
workflow behind one client class so callers (CLI, HTTP service, tests)
never deal with HTTP details.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. AssemblyAIClient is an
async context manager: enter it to get an authenticated client, exit to
close the connection pool. Each API step is a separate method:
upload_file → create_transcript → wait_for_transcript → delete_transcript.

RULES:
- Always use the async context manager (async with AssemblyAIClient() as client:)
- Authentication is the raw API key in the "authorization" header
- Polling uses a fixed interval (TRANSCRIPT_POLL_INTERVAL_S) while the
  status is "queued"/"processing"; it waits indefinitely unless timeout_s
- A terminal "error" status raises TranscriptionError with the provider's
  error text verbatim; it is never retried
- Non-2xx responses raise AssemblyAIError
- transport is for tests (httpx.MockTransport)
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from pathlib import Path

import httpx

from caption_studio.api.models import TranscriptResponse
from caption_studio.config import (
    ASSEMBLYAI_BASE_URL,
    DEFAULT_LANGUAGE_CODE,
    TRANSCRIPT_POLL_INTERVAL_S,
    load_api_key,
)
from caption_studio.core.errors import TranscriptionError

logger = logging.getLogger(__name__)


class AssemblyAIError(Exception):
    """Raised when the AssemblyAI API returns an error response.

    WHY: Callers need a typed exception to distinguish provider HTTP errors
    from network errors or a failed transcription.

    HOW: Wraps the HTTP status code and response body.

    RULES:
    - Always include status_code and message
    - message is the response body text
    """

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"AssemblyAI API error {status_code}: {message}")


class TranscriptionTimeoutError(TimeoutError):
    """Raised when wait_for_transcript() exceeds its optional timeout."""


class AssemblyAIClient:
    """Async client for the AssemblyAI transcription API.

    WHY: Provides a typed interface for the workflow
    upload → create → poll → delete, with auth and error wrapping.

    HOW: Wraps httpx.AsyncClient with the authorization header. Each API
    step is an async method.

    RULES:
    - api_key defaults to load_api_key() from .env
    - base_url defaults to ASSEMBLYAI_BASE_URL from config
    - poll_interval_s defaults to TRANSCRIPT_POLL_INTERVAL_S from config
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        poll_interval_s: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key or load_api_key()
        self._base_url = (base_url or ASSEMBLYAI_BASE_URL).rstrip("/")
        self._poll_interval_s = (
            TRANSCRIPT_POLL_INTERVAL_S if poll_interval_s is None else poll_interval_s
        )
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> AssemblyAIClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"authorization": self._api_key},
            timeout=httpx.Timeout(300.0, connect=30.0),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "AssemblyAIClient must be used as an async context manager: "
                "async with AssemblyAIClient() as client: ..."
            )
        return self._client

    # ------------------------------------------------------------------
    # Step 1: Upload file
    # ------------------------------------------------------------------

    async def upload_file(
        self,
        file_path: Path,
        on_status: Callable[[str], None] | None = None,
    ) -> str:
        """Upload a media file and return the provider's upload_url.

        The body is the raw file bytes (not multipart), as the /upload
        endpoint expects.
        """
        client = self._ensure_client()
        if on_status:
            on_status("Uploading file...")

        file_path = Path(file_path)
        content = await asyncio.to_thread(file_path.read_bytes)
        resp = await client.post(
            "/upload",
            content=content,
            headers={"content-type": "application/octet-stream"},
        )

        if resp.status_code not in (200, 201):
            raise AssemblyAIError(resp.status_code, resp.text)

        return resp.json()["upload_url"]

    # ------------------------------------------------------------------
    # Step 2: Create transcript
    # ------------------------------------------------------------------

    async def create_transcript(
        self,
        audio_url: str,
        language_code: str | None = None,
        on_status: Callable[[str], None] | None = None,
    ) -> str:
        """Create a transcription job for ``audio_url`` and return its id."""
        client = self._ensure_client()
        if on_status:
            on_status("Creating transcript...")

        body = {
            "audio_url": audio_url,
            "language_code": language_code or DEFAULT_LANGUAGE_CODE,
        }
        resp = await client.post("/transcript", json=body)

        if resp.status_code not in (200, 201):
            raise AssemblyAIError(resp.status_code, resp.text)

        transcript_id = resp.json()["id"]
        logger.info("Created transcript %s (%s)", transcript_id, body["language_code"])
        return transcript_id

    # ------------------------------------------------------------------
    # Step 3: Poll until terminal
    # ------------------------------------------------------------------

    async def get_transcript(self, transcript_id: str) -> TranscriptResponse:
        client = self._ensure_client()
        resp = await client.get(f"/transcript/{transcript_id}")
        if resp.status_code != 200:
            raise AssemblyAIError(resp.status_code, resp.text)
        return TranscriptResponse.from_dict(resp.json())

    async def wait_for_transcript(
        self,
        transcript_id: str,
        on_status: Callable[[str], None] | None = None,
        timeout_s: float | None = None,
    ) -> TranscriptResponse:
        """Poll a transcript until it completes or fails.

        WHY: Transcription is not instant. The provider reports "queued"
        and "processing" until the job reaches "completed" or "error".

        HOW: GET the transcript, check its status, sleep the fixed poll
        interval, repeat. The status is checked before sleeping, so an
        already finished transcript returns after one request.

        RULES:
        - Returns the TranscriptResponse when status is "completed"
        - Raises TranscriptionError (provider text verbatim) on "error"
        - Raises TranscriptionError on a status that is neither pending nor final
        - Raises TranscriptionTimeoutError only when timeout_s is given

        Args:
            transcript_id: The id from create_transcript().
            on_status: Optional callback for status updates.
            timeout_s: Optional upper bound on total waiting time.

        Returns:
            The completed TranscriptResponse, words included.
        """
        start_time = time.monotonic()

        while True:
            transcript = await self.get_transcript(transcript_id)
            elapsed = time.monotonic() - start_time

            if on_status:
                if transcript.status == "queued":
                    on_status("Transcription queued...")
                elif transcript.status == "processing":
                    on_status(
                        f"Transcribing... (elapsed: {int(elapsed) // 60}m {int(elapsed) % 60:02d}s)"
                    )
                elif transcript.status == "completed":
                    on_status("Transcription complete.")

            if transcript.status == "completed":
                return transcript

            if transcript.status == "error":
                raise TranscriptionError(transcript.error or "Transcription failed")

            if not transcript.is_pending:
                raise TranscriptionError(
                    f"Unexpected transcript status {transcript.status!r} for {transcript_id}"
                )

            if timeout_s is not None and elapsed > timeout_s:
                raise TranscriptionTimeoutError(
                    f"Transcript {transcript_id} still {transcript.status} after "
                    f"{elapsed:.0f}s (limit: {timeout_s:.0f}s)"
                )

            await asyncio.sleep(self._poll_interval_s)

    # ------------------------------------------------------------------
    # Step 4: Cleanup
    # ------------------------------------------------------------------

    async def delete_transcript(self, transcript_id: str) -> None:
        """Delete a transcript from the provider. Best-effort.

        Failures are logged as warnings and never raised, since the words
        have already been fetched by the time this runs.
        """
        client = self._ensure_client()
        try:
            resp = await client.delete(f"/transcript/{transcript_id}")
        except httpx.HTTPError as exc:
            logger.warning("Could not delete transcript %s: %s", transcript_id, exc)
            return
        if resp.status_code not in (200, 204):
            logger.warning(
                "Could not delete transcript %s: HTTP %d", transcript_id, resp.status_code
            )
