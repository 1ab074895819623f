"""
HTTP API for Nexus Chat.

This module exposes chat sessions over REST so other frontends can drive the orchestrator.
It exposes the following endpoints:
- **GET /health** - liveness probe for health checks.
- **GET /models** - models offered by the Nexus gateway.
- **POST /sessions** - create a new session, returns its snapshot.
- **GET /sessions** - list all active sessions.
- **GET /sessions/{id}** - transcript, state and pending tool calls of a session.
- **POST /sessions/{id}/messages** - send a user message: {"message": "..."}
- **POST /sessions/{id}/tool-results** - answer a pending tool call manually.
- **POST /sessions/{id}/reset** - start a new chat in the session.

Message and tool-result requests return once the session is idle again or blocked on manual tool
responses.
"""

import logging
from typing import (
    Dict,
    List,
    Optional,
    cast,
)

from fastapi import (
    Depends,
    FastAPI,
    HTTPException,
)

from nexuschat.api.models import (
    MessageRequest,
    ModelsResponse,
    SessionRequest,
    SessionResponse,
    ToolResultRequest,
)
from nexuschat.bootstrap import (
    build_completion_client,
    build_tool_service,
    create_orchestrator,
)
from nexuschat.clients.completion import CompletionClient
from nexuschat.clients.tool_service import ToolServiceClient
from nexuschat.common import (
    AnsiColors,
    colored_print,
)
from nexuschat.config import settings
from nexuschat.core.errors import (
    AlreadyResolvedError,
    EmptyMessageError,
    NoModelSelectedError,
    ToolSchemaError,
    TransportError,
    TurnInProgressError,
    UnknownToolCallError,
)
from nexuschat.core.orchestrator import Orchestrator
from nexuschat.core.renderer import RecordingRenderer
from nexuschat.core.session import select_model

logger = logging.getLogger(__name__)

# Session storage (in-memory, lost on restart)
sessions: Dict[str, Orchestrator] = {}

app = FastAPI(title="Nexus Chat API", version="0.1.0", description="Nexus Chat orchestrator API")

_completion_client: Optional[CompletionClient] = None
_tool_service: Optional[ToolServiceClient] = None


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------
def get_completion_client() -> CompletionClient:
    """Shared chat-completions client."""
    global _completion_client  # pylint: disable=global-statement
    if _completion_client is None:
        _completion_client = build_completion_client(settings)
    return _completion_client


def get_tool_service() -> Optional[ToolServiceClient]:
    """Shared tool-execution client, if one is configured."""
    global _tool_service  # pylint: disable=global-statement
    if _tool_service is None:
        _tool_service = build_tool_service(settings)
    return _tool_service


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------
def get_session(session_id: str) -> Orchestrator:
    """Look up a session or answer 404."""
    orchestrator = sessions.get(session_id)
    if orchestrator is None:
        raise HTTPException(status_code=404, detail=f"Unknown session '{session_id}'")
    return orchestrator


def snapshot(orchestrator: Orchestrator) -> SessionResponse:
    renderer = cast(RecordingRenderer, orchestrator.renderer)
    return SessionResponse(
        session_id=orchestrator.session.session_id,
        model=orchestrator.session.model,
        state=orchestrator.state.value,
        status=renderer.status,
        transcript=orchestrator.transcript.messages,
        pending_tool_calls=orchestrator.pending_tool_calls(),
        errors=list(renderer.errors),
    )


def _clear_errors(orchestrator: Orchestrator) -> None:
    cast(RecordingRenderer, orchestrator.renderer).errors.clear()


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/health", summary="Health check")
async def health() -> dict[str, str]:
    """Return a simple liveness payload."""
    return {"status": "ok"}


@app.get("/models", response_model=ModelsResponse, summary="List models")
async def list_models(
    completion: CompletionClient = Depends(get_completion_client),
) -> ModelsResponse:
    """List the models offered by the gateway."""
    try:
        return ModelsResponse(models=await completion.list_models())
    except TransportError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@app.post("/sessions", response_model=SessionResponse, summary="Create a new session")
async def create_session(
    req: Optional[SessionRequest] = None,
    completion: CompletionClient = Depends(get_completion_client),
    tool_service: Optional[ToolServiceClient] = Depends(get_tool_service),
) -> SessionResponse:
    """Create a new conversation session."""
    req = req or SessionRequest()
    model = req.model or settings.MODEL
    if model is None:
        try:
            model = select_model(await completion.list_models())
        except TransportError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
    if model is None:
        raise HTTPException(status_code=503, detail="No models available")

    try:
        orchestrator = await create_orchestrator(
            settings,
            completion,
            tool_service,
            model,
            renderer=RecordingRenderer(),
            tool_set=req.tool_set,
        )
    except (ToolSchemaError, ValueError) as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    sessions[orchestrator.session.session_id] = orchestrator
    return snapshot(orchestrator)


@app.get("/sessions", response_model=List[str], summary="List active sessions")
async def list_sessions() -> List[str]:
    """List all active session IDs."""
    return list(sessions.keys())


@app.get("/sessions/{session_id}", response_model=SessionResponse, summary="Session snapshot")
async def read_session(session_id: str) -> SessionResponse:
    """Return the current state of a session."""
    return snapshot(get_session(session_id))


@app.post(
    "/sessions/{session_id}/messages", response_model=SessionResponse, summary="Send a message"
)
async def send_message(session_id: str, req: MessageRequest) -> SessionResponse:
    """Start a turn and wait until it completes or needs manual tool responses."""
    orchestrator = get_session(session_id)
    try:
        orchestrator.start_turn(req.message)
    except TurnInProgressError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except (EmptyMessageError, NoModelSelectedError) as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    _clear_errors(orchestrator)

    await orchestrator.wait_until_settled()
    return snapshot(orchestrator)


@app.post(
    "/sessions/{session_id}/tool-results",
    response_model=SessionResponse,
    summary="Answer a tool call",
)
async def submit_tool_result(session_id: str, req: ToolResultRequest) -> SessionResponse:
    """Resolve a pending tool call and wait for the turn to settle again."""
    orchestrator = get_session(session_id)
    try:
        orchestrator.resolve_tool_call(req.tool_call_id, req.content)
    except UnknownToolCallError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except AlreadyResolvedError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    await orchestrator.wait_until_settled()
    return snapshot(orchestrator)


@app.post("/sessions/{session_id}/reset", response_model=SessionResponse, summary="New chat")
async def reset_session(session_id: str) -> SessionResponse:
    """Clear the transcript and re-seed the welcome message."""
    orchestrator = get_session(session_id)
    try:
        orchestrator.reset()
    except TurnInProgressError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    _clear_errors(orchestrator)
    return snapshot(orchestrator)


# ---------------------------------------------------------------------------
# Public helper to launch the API (imported by main.py)
# ---------------------------------------------------------------------------
def run_api(
    host: str = "0.0.0.0", port: int = 8000, reload: bool = False, log_level: str | None = None
) -> None:
    """Start a uvicorn server hosting *app*.

    Parameters
    ----------
    host, port:
        Bind address for the HTTP server.
    reload:
        If *True*, enable auto-reload.
    log_level:
        Logging level to use (default from settings if not provided).
    """

    # Lazy import - keeps uvicorn out of the import path of the CLI
    import uvicorn  # pylint: disable=import-outside-toplevel

    if log_level is None:  # Use the default from settings if not provided
        log_level = settings.LOG_LEVEL

    logger.info(
        "Starting Nexus Chat API at %s:%d (reload=%s, log_level=%s)", host, port, reload, log_level
    )
    logger.debug("API settings: %s", settings.model_dump())

    colored_print(f"🔮 Nexus Chat API is running at http://localhost:{port}.", AnsiColors.GREEN)
    colored_print(f"Visit http://localhost:{port}/docs for API documentation.", AnsiColors.BLUE)
    uvicorn.run(
        "nexuschat.api.app:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


# ---------------------------------------------------------------------------
# `python -m nexuschat.api.app` helper
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    run_api(reload=True)
