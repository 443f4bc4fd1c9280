"""Test package for StudyBot.

Structure:
    - unit/: Individual function and class tests
    - integration/: HTTP-level tests against the FastAPI app

The remote model is never called: streaming is scripted with
FakeStreamingClient or a mocked Agno agent. Leverages pytest with
pytest-check for soft assertions.
"""
