"""Tests for the AssemblyAI async client.

WHY: The client is the only code that talks to the provider. Its request
shapes, polling loop, and error mapping must be right without a network.

HOW: httpx.MockTransport answers requests in-process. Each test records
the requests it sees and drives the client with asyncio.run().

RULES:
- No test touches the network
- poll_interval_s=0 so polling tests never sleep
"""

from __future__ import annotations

import asyncio
import json
import logging

import httpx
import pytest

from caption_studio.api.client import (
    AssemblyAIClient,
    AssemblyAIError,
    TranscriptionTimeoutError,
)
from caption_studio.core.errors import TranscriptionError

BASE_URL = "https://api.test/v2"


def _client(handler, **kwargs) -> AssemblyAIClient:
    return AssemblyAIClient(
        api_key="test-key",
        base_url=BASE_URL,
        poll_interval_s=0,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def _run(client: AssemblyAIClient, step):
    async def _go():
        async with client as c:
            return await step(c)
    return asyncio.run(_go())


# ---------------------------------------------------------------------------
# Upload / create
# ---------------------------------------------------------------------------


class TestUpload:

    def test_posts_raw_bytes_with_auth(self, tmp_path):
        media = tmp_path / "clip.mp4"
        media.write_bytes(b"\x00\x01video")
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"upload_url": "https://cdn.test/u/1"})

        statuses = []
        url = _run(_client(handler), lambda c: c.upload_file(media, on_status=statuses.append))

        assert url == "https://cdn.test/u/1"
        assert seen[0].method == "POST"
        assert seen[0].url.path == "/v2/upload"
        assert seen[0].headers["authorization"] == "test-key"
        assert seen[0].content == b"\x00\x01video"
        assert statuses == ["Uploading file..."]

    def test_http_error_raises(self, tmp_path):
        media = tmp_path / "clip.mp4"
        media.write_bytes(b"x")

        def handler(request):
            return httpx.Response(401, text="Invalid API key")

        with pytest.raises(AssemblyAIError) as excinfo:
            _run(_client(handler), lambda c: c.upload_file(media))
        assert excinfo.value.status_code == 401
        assert excinfo.value.message == "Invalid API key"


class TestCreateTranscript:

    def test_sends_audio_url_and_language(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"id": "tr-1", "status": "queued"})

        transcript_id = _run(
            _client(handler), lambda c: c.create_transcript("https://cdn.test/u/1", "en")
        )
        assert transcript_id == "tr-1"
        assert bodies == [{"audio_url": "https://cdn.test/u/1", "language_code": "en"}]

    def test_defaults_to_french(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"id": "tr-1"})

        _run(_client(handler), lambda c: c.create_transcript("https://cdn.test/u/1"))
        assert bodies[0]["language_code"] == "fr"

    def test_http_error_raises(self):
        def handler(request):
            return httpx.Response(400, text="bad audio_url")

        with pytest.raises(AssemblyAIError, match="400"):
            _run(_client(handler), lambda c: c.create_transcript("nope"))


# ---------------------------------------------------------------------------
# Polling
# ---------------------------------------------------------------------------


class TestWaitForTranscript:

    def test_polls_until_completed(self, bonjour_payload):
        responses = iter([
            {"id": "tr-123", "status": "queued"},
            {"id": "tr-123", "status": "processing"},
            bonjour_payload,
        ])
        calls = []

        def handler(request):
            calls.append(request.url.path)
            return httpx.Response(200, json=next(responses))

        statuses = []
        transcript = _run(
            _client(handler),
            lambda c: c.wait_for_transcript("tr-123", on_status=statuses.append),
        )

        assert transcript.status == "completed"
        assert len(transcript.words) == 4
        assert calls == ["/v2/transcript/tr-123"] * 3
        assert statuses[0] == "Transcription queued..."
        assert statuses[-1] == "Transcription complete."

    def test_completed_transcript_returns_after_one_request(self, bonjour_payload):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=bonjour_payload)

        _run(_client(handler), lambda c: c.wait_for_transcript("tr-123"))
        assert len(calls) == 1

    def test_error_status_raises_provider_text(self):
        def handler(request):
            return httpx.Response(
                200, json={"id": "tr-1", "status": "error", "error": "File does not appear to contain audio."}
            )

        with pytest.raises(TranscriptionError) as excinfo:
            _run(_client(handler), lambda c: c.wait_for_transcript("tr-1"))
        assert str(excinfo.value) == "File does not appear to contain audio."

    def test_unknown_status_raises_instead_of_polling(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"id": "tr-1", "status": "paused"})

        with pytest.raises(TranscriptionError, match="paused"):
            _run(_client(handler), lambda c: c.wait_for_transcript("tr-1"))
        assert len(calls) == 1

    def test_timeout_when_requested(self):
        def handler(request):
            return httpx.Response(200, json={"id": "tr-1", "status": "processing"})

        with pytest.raises(TranscriptionTimeoutError):
            _run(_client(handler), lambda c: c.wait_for_transcript("tr-1", timeout_s=-1))

    def test_get_http_error_raises(self):
        def handler(request):
            return httpx.Response(404, text="not found")

        with pytest.raises(AssemblyAIError) as excinfo:
            _run(_client(handler), lambda c: c.get_transcript("tr-missing"))
        assert excinfo.value.status_code == 404


# ---------------------------------------------------------------------------
# Delete / lifecycle
# ---------------------------------------------------------------------------


class TestDeleteTranscript:

    def test_sends_delete(self):
        seen = []

        def handler(request):
            seen.append((request.method, request.url.path))
            return httpx.Response(200, json={"id": "tr-1"})

        _run(_client(handler), lambda c: c.delete_transcript("tr-1"))
        assert seen == [("DELETE", "/v2/transcript/tr-1")]

    def test_failure_is_logged_not_raised(self, caplog):
        def handler(request):
            return httpx.Response(500, text="boom")

        with caplog.at_level(logging.WARNING, logger="caption_studio.api.client"):
            _run(_client(handler), lambda c: c.delete_transcript("tr-1"))
        assert "Could not delete transcript tr-1" in caplog.text

    def test_network_error_is_logged_not_raised(self, caplog):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with caplog.at_level(logging.WARNING, logger="caption_studio.api.client"):
            _run(_client(handler), lambda c: c.delete_transcript("tr-1"))
        assert "connection refused" in caplog.text


class TestLifecycle:

    def test_requires_context_manager(self):
        client = _client(lambda request: httpx.Response(200))
        with pytest.raises(RuntimeError, match="async context manager"):
            asyncio.run(client.get_transcript("tr-1"))

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("ASSEMBLYAI_API_KEY", raising=False)
        with pytest.raises(ValueError, match="ASSEMBLYAI_API_KEY"):
            AssemblyAIClient()
