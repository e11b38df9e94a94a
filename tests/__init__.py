"""
ShelfScan Test Suite

Tests are organized into:
- unit/: Unit tests for individual components
- integration/: API tests against the FastAPI app
"""
