"""Integration tests for components working together as a system.

Coverage:
    - API endpoints with real HTTP requests over ASGITransport
    - SSE framing of streamed replies
    - Identity gating and history endpoints end to end
"""
