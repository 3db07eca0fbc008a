"""AvailNow Test Suite

Test organization:
- unit/: Unit tests for individual modules
  - engine/: Overlap, reconciliation engine, recurrence, views
  - providers/: Google and Outlook adapters (HTTP mocked)
  - services/: Orchestrator, OAuth manager, availability read path, config, CLI
  - storage/: SQLite stores and the token cipher
- integration/: HTTP API through FastAPI's TestClient and httpx

Running tests:
    # All tests
    pytest

    # One area
    pytest tests/unit/engine/

    # Without the HTTP suite
    pytest -m "not integration"
"""
