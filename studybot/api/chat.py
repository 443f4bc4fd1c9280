"""Chat endpoints: streamed replies over Server-Sent Events and history."""

import logging
from collections.abc import AsyncGenerator
from contextlib import aclosing

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from studybot.chat.controller import AssemblyController, SubmitResult, get_chat_controller
from studybot.models.schemas import ChatHistoryResponse, ChatRequest, StreamChunk

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])

_REJECTIONS = {
    SubmitResult.IDENTITY_REQUIRED: (
        status.HTTP_428_PRECONDITION_REQUIRED,
        "Set a display name before chatting",
    ),
    SubmitResult.BUSY: (
        status.HTTP_409_CONFLICT,
        "A reply is still streaming",
    ),
    SubmitResult.DISPOSED: (
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "Chat session is shutting down",
    ),
    SubmitResult.EMPTY: (
        status.HTTP_400_BAD_REQUEST,
        "Message must not be empty",
    ),
}


async def _sse_events(chunks: AsyncGenerator[StreamChunk]) -> AsyncGenerator[str]:
    """Encode stream chunks as SSE ``data:`` lines."""
    async with aclosing(chunks) as stream:
        async for chunk in stream:
            yield f"data: {chunk.model_dump_json()}\n\n"


class ExchangeStreamResponse(StreamingResponse):
    """SSE response bound to one exchange of the chat session.

    However the response ends (complete, client disconnect, cancellation),
    the event stream is closed and the session returns to idle.
    """

    def __init__(self, controller: AssemblyController, target_message_id: str) -> None:
        self._controller = controller
        self._target_message_id = target_message_id
        self._events = _sse_events(controller.run_exchange())
        super().__init__(
            self._events,
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self._events.aclose()
            if self._controller.abandon(self._target_message_id):
                logger.warning("Client left before the reply started streaming")


@router.get("/history", response_model=ChatHistoryResponse)
async def get_history(
    controller: AssemblyController = Depends(get_chat_controller),
) -> ChatHistoryResponse:
    """Return the conversation log and streaming flags."""
    view = controller.view
    return ChatHistoryResponse(
        messages=list(view.messages),
        loading=view.loading,
        streaming=view.streaming,
        target_message_id=view.target_message_id,
    )


@router.post("/stream")
async def stream_chat(
    request: ChatRequest,
    controller: AssemblyController = Depends(get_chat_controller),
) -> StreamingResponse:
    """Send a message and stream the reply.

    Each SSE event carries a StreamChunk; the last one has ``done=true``.

    Raises:
        428: No identity is set.
        409: Another reply is still streaming.
    """
    result = controller.begin(request.message)
    if result is not SubmitResult.SENT:
        status_code, detail = _REJECTIONS[result]
        raise HTTPException(status_code=status_code, detail=detail)

    target_message_id = controller.view.target_message_id
    if target_message_id is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A reply is still streaming",
        )
    return ExchangeStreamResponse(controller, target_message_id)


@router.delete("/history", status_code=status.HTTP_204_NO_CONTENT)
async def clear_history(
    controller: AssemblyController = Depends(get_chat_controller),
) -> Response:
    """Empty the conversation log.

    Raises:
        409: A reply is still streaming.
    """
    if not controller.clear_history():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Cannot clear history while a reply is streaming",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
