"""StudyBot - streaming study-assistant chat for the StudyWithMe website.

Combines Agno for model streaming, FastAPI for HTTP/SSE access,
NiceGUI for the chat widget, and Pydantic for data validation.

Components:
    - chat: session store, identity gate, reply assembly, text formatting
    - agent: streamed exchange with the remote model
    - api: HTTP endpoints and streaming responses
    - ui: chat widget page
    - models: shared schemas
"""

__version__ = "0.1.0"
