"""FastAPI endpoints for the study assistant.

Endpoints:
    - GET /health: Service health status
    - GET /chat/history: Conversation log and streaming flags
    - POST /chat/stream: Send a message, stream the reply over SSE
    - DELETE /chat/history: Clear the conversation log
    - GET/PUT/DELETE /identity: User profile gating the chat
"""

from studybot.api.app import app, create_app

__all__ = ["app", "create_app"]
