"""
FastAPI Application Package

This package contains the FastAPI application: the health and snapshot REST
endpoints, the subscriber WebSocket endpoint, and (in production) the static
presentation bundle.
"""
