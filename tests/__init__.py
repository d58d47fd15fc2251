"""
Test Suite

Contains unit tests for the relay and its client-side building blocks.

Structure:
- tests/unit/: Tests for individual components (transformer, upstream feed,
  subscriber registry, relay, reconnector, stores) and the FastAPI surface

Uses pytest with pytest-asyncio for testing async functionality. No test
touches the network; sockets are faked or driven through FastAPI's TestClient.
"""
