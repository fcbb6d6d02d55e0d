"""AssemblyAI API client package: async HTTP interface to the transcription service.

WHY: Caption Studio needs to upload media, create transcription jobs, poll
for completion, and clean up transcripts. This package encapsulates all
provider communication behind an async client class.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. AssemblyAIClient
provides one method per workflow step. Responses are parsed into typed
dataclasses defined in models.py.

RULES:
- All HTTP calls go through AssemblyAIClient (no direct httpx usage elsewhere)
- Authentication is the API key from config
- Delete transcripts after the words have been fetched
"""

from caption_studio.api.client import AssemblyAIClient, AssemblyAIError
from caption_studio.api.models import ProviderWord, TranscriptResponse

__all__ = ["AssemblyAIClient", "AssemblyAIError", "ProviderWord", "TranscriptResponse"]
