"""HTTP endpoints dispatching to the chat controller.

Each endpoint is one user intent. Errors from the controller map onto HTTP
status codes: NotFound -> 404, PreconditionError -> 409, bad image -> 400.
"""

import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, Depends, HTTPException, Request, UploadFile, status
from fastapi.responses import StreamingResponse

from ollama_chat.attachments.image_resizer import ImageProcessingError
from ollama_chat.chat.controller import ChatController
from ollama_chat.errors import NotFoundError, OllamaChatError, PreconditionError
from ollama_chat.models import (
    ConnectionInfo,
    EndpointTest,
    PromptCreate,
    PromptTemplate,
    SendRequest,
    Session,
    SessionUpdate,
    Settings,
    SettingsUpdate,
)

logger = logging.getLogger(__name__)


def get_controller(request: Request) -> ChatController:
    return request.app.state.controller


def _http_error(e: OllamaChatError) -> HTTPException:
    """Translate a controller error into an HTTPException."""
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, PreconditionError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


def _connection_info(controller: ChatController) -> ConnectionInfo:
    return ConnectionInfo(state=controller.connection, models=controller.state.model_names)


# === Connection and settings ===

connection_router = APIRouter(tags=["connection"])


@connection_router.get("/connection", response_model=ConnectionInfo)
async def get_connection(controller: ChatController = Depends(get_controller)) -> ConnectionInfo:
    """Return the last known connection state and advertised models."""
    return _connection_info(controller)


@connection_router.post("/connection/check", response_model=ConnectionInfo)
async def check_connection(
    controller: ChatController = Depends(get_controller),
) -> ConnectionInfo:
    """Re-probe the server and refresh the model list."""
    await controller.check_connection()
    return _connection_info(controller)


@connection_router.get("/settings", response_model=Settings)
async def get_settings(controller: ChatController = Depends(get_controller)) -> Settings:
    return controller.state.settings


@connection_router.put("/settings", response_model=Settings)
async def update_settings(
    update: SettingsUpdate,
    controller: ChatController = Depends(get_controller),
) -> Settings:
    """Save settings and reconnect."""
    try:
        return await controller.update_settings(
            endpoint=update.endpoint, default_model=update.default_model
        )
    except OllamaChatError as e:
        raise _http_error(e) from e
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


@connection_router.post("/settings/test")
async def test_endpoint(
    payload: EndpointTest,
    controller: ChatController = Depends(get_controller),
) -> dict[str, bool]:
    """Probe an endpoint without switching to it."""
    return {"success": await controller.test_endpoint(payload.endpoint)}


# === Sessions ===

sessions_router = APIRouter(prefix="/sessions", tags=["sessions"])


@sessions_router.get("", response_model=list[Session])
async def list_sessions(controller: ChatController = Depends(get_controller)) -> list[Session]:
    """List sessions, most recently updated first."""
    return controller.list_sessions()


@sessions_router.post("", response_model=Session, status_code=status.HTTP_201_CREATED)
async def create_session(controller: ChatController = Depends(get_controller)) -> Session:
    """Create a session with the default model and make it active."""
    return controller.new_session()


@sessions_router.get("/{session_id}", response_model=Session)
async def get_session(
    session_id: str,
    controller: ChatController = Depends(get_controller),
) -> Session:
    session = controller.sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return session


@sessions_router.patch("/{session_id}", response_model=Session)
async def update_session(
    session_id: str,
    update: SessionUpdate,
    controller: ChatController = Depends(get_controller),
) -> Session:
    """Rename, switch model, or change the system prompt of a session."""
    try:
        session = controller.sessions.get(session_id)
        if session is None:
            raise NotFoundError(f"Session not found: {session_id}")
        if update.title is not None:
            session = controller.rename(session_id, update.title)
        if update.model is not None:
            session = controller.set_model(session_id, update.model)
        if update.template_key is not None:
            session = controller.apply_template(session_id, update.template_key)
        if update.system_prompt is not None:
            session = controller.apply_system_prompt(session_id, update.system_prompt)
    except OllamaChatError as e:
        raise _http_error(e) from e
    return session


@sessions_router.delete("/{session_id}")
async def delete_session(
    session_id: str,
    controller: ChatController = Depends(get_controller),
) -> dict[str, bool]:
    try:
        was_active = controller.delete(session_id)
    except OllamaChatError as e:
        raise _http_error(e) from e
    return {"deleted": True, "was_active": was_active}


@sessions_router.post("/{session_id}/select", response_model=Session)
async def select_session(
    session_id: str,
    controller: ChatController = Depends(get_controller),
) -> Session:
    try:
        return controller.select(session_id)
    except OllamaChatError as e:
        raise _http_error(e) from e


@sessions_router.post("/{session_id}/reset", response_model=Session)
async def reset_session(
    session_id: str,
    controller: ChatController = Depends(get_controller),
) -> Session:
    """Clear the session locally and ask the server to drop its context."""
    try:
        return await controller.reset(session_id)
    except OllamaChatError as e:
        raise _http_error(e) from e


@sessions_router.post("/{session_id}/cancel")
async def cancel_send(
    session_id: str,
    controller: ChatController = Depends(get_controller),
) -> dict[str, bool]:
    return {"cancelled": controller.cancel(session_id)}


@sessions_router.post("/{session_id}/messages")
async def send_message(
    session_id: str,
    payload: SendRequest,
    controller: ChatController = Depends(get_controller),
) -> StreamingResponse:
    """Send a message and stream the reply as Server-Sent Events.

    Each event is a JSON-encoded StreamChunk. Preconditions are checked
    before the stream opens so rejections come back as plain HTTP errors.
    """
    image = payload.image or controller.state.pending_image
    try:
        controller.check_send(session_id, payload.message, image)
    except OllamaChatError as e:
        raise _http_error(e) from e
    if image is controller.state.pending_image:
        controller.clear_image()

    async def event_stream() -> AsyncGenerator[str]:
        async for chunk in controller.stream_send(session_id, payload.message, image):
            yield f"data: {chunk.model_dump_json()}\n\n"

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


# === Attachments ===

attachments_router = APIRouter(prefix="/attachments", tags=["attachments"])


@attachments_router.post("/image")
async def attach_image(
    file: UploadFile,
    controller: ChatController = Depends(get_controller),
) -> dict[str, int]:
    """Resize an uploaded image and hold it for the next message."""
    content = await file.read()
    try:
        payload = controller.attach_image(content)
    except ImageProcessingError as e:
        logger.warning(f"Image rejected ({file.filename}): {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return {"size": len(payload)}


@attachments_router.delete("/image")
async def clear_image(controller: ChatController = Depends(get_controller)) -> dict[str, bool]:
    controller.clear_image()
    return {"cleared": True}


# === Prompt templates ===

prompts_router = APIRouter(prefix="/prompts", tags=["prompts"])


@prompts_router.get("", response_model=list[PromptTemplate])
async def list_prompts(
    controller: ChatController = Depends(get_controller),
) -> list[PromptTemplate]:
    return controller.prompts.list()


@prompts_router.post("", response_model=PromptTemplate, status_code=status.HTTP_201_CREATED)
async def save_prompt(
    payload: PromptCreate,
    controller: ChatController = Depends(get_controller),
) -> PromptTemplate:
    """Save a template. A name that slugs to an existing key replaces it."""
    try:
        return controller.save_template(payload.name, payload.prompt)
    except OllamaChatError as e:
        raise _http_error(e) from e


@prompts_router.delete("/{key}")
async def delete_prompt(
    key: str,
    controller: ChatController = Depends(get_controller),
) -> dict[str, bool]:
    try:
        controller.prompts.delete(key)
    except OllamaChatError as e:
        raise _http_error(e) from e
    return {"deleted": True}
