"""
Core Package

Contains the exchange-agnostic core logic including:
- Config: Pydantic Settings loaded from the environment / .env
- Logging: Unified application logger
- Schemas: Pydantic models for the normalized ticker snapshot and wire envelope
- Transformer: Pure mapping from upstream ticker events to wire messages
"""
