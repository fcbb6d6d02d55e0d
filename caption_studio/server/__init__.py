"""HTTP service: FastAPI app, background job store, editing sessions.

WHY: The editor front-end talks to Caption Studio over HTTP. Long-running
work (transcription, rendering) runs as background jobs; undo/redo lives
in per-session history managers.

HOW: app.py defines the endpoints, jobs.py the thread-safe JobStore,
sessions.py the SessionStore, models.py the pydantic schemas.

RULES:
- Endpoint handlers stay thin; pipeline logic lives in core/, api/, render/
"""
