"""Unit tests for individual components in isolation.

Coverage:
    - chat/: session store, storage, identity gate, controller, formatter
    - agent/: agent configuration, prompt building, chunk/failure protocol

Uses mocks for the Agno agent. Leverages pytest-check for multiple
assertions per test.
"""
