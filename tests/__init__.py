"""
MediaProbe Test Suite

Test Categories:
- unit/: Fast, isolated unit tests
- integration/: HTTP API tests through the FastAPI test client
- fixtures/: Scripted backends and sample backend output
"""
