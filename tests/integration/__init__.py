"""Integration tests for components working together as a system.

Coverage:
    - ChatController send/reset/cancel flows against a fake server
    - FastAPI endpoints with real HTTP requests over ASGITransport
"""
