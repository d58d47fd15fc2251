"""
Configuration Management Module

This module handles loading, validating, and providing access to application configuration
from environment variables (.env file).

Uses Pydantic Settings for automatic validation and type conversion.

Key Features:
- Loads configuration from .env file
- Validates all required settings
- Provides type-safe access to configuration values
- Converts comma-separated strings to lists (symbols, CORS origins)
- Handles optional settings with sensible defaults

Usage:
    from core.config import settings

    # Access configuration values
    print(settings.binance_ws_url)
    print(settings.symbols_list)  # Returns a list of strings
"""

from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


DEFAULT_SYMBOLS = (
    "BTCUSDT,ETHUSDT,BNBUSDT,ADAUSDT,XRPUSDT,"
    "SOLUSDT,DOTUSDT,DOGEUSDT,AVAXUSDT,MATICUSDT"
)


class Settings(BaseSettings):
    """
    Application Settings

    Values are automatically loaded from environment variables or .env file.

    Attributes:
        binance_ws_url: Base URL for the Binance spot raw-stream endpoint
        supported_symbols: Trading pairs relayed to subscribers
        upstream_reconnect_delay: Fixed delay before the upstream link reconnects
        upstream_heartbeat: Ping interval on the upstream socket
        broadcast_send_timeout: Per-subscriber send timeout during fan-out
        client_reconnect_base_delay: Base of the client exponential backoff
        client_reconnect_max_delay: Upper bound for a single client backoff delay
        client_max_reconnect_attempts: Attempts before a client gives up
        price_history_size: Price points kept per symbol on the client
        relay_ws_url: Relay address used by the bundled client tools
        app_host: Host address for FastAPI server
        app_port: Port number for FastAPI server
        environment: Current environment (development, production)
        debug: Enable debug mode with verbose logging
        client_url: Frontend origin allowed in production
        cors_origins: Frontend origins allowed in development
        static_dir: Built presentation bundle served in production
        preferences_path: JSON file backing favorites and theme
    """

    # ============================================
    # Upstream Feed Configuration
    # ============================================

    binance_ws_url: str = Field(
        default="wss://stream.binance.com:9443/ws",
        description="Binance spot WebSocket raw-stream base URL"
    )

    supported_symbols: str = Field(
        default=DEFAULT_SYMBOLS,
        description="Comma-separated list of trading pairs"
    )

    upstream_reconnect_delay: float = Field(
        default=5.0,
        description="Fixed delay between upstream reconnection attempts (seconds)"
    )

    upstream_heartbeat: float = Field(
        default=30.0,
        description="Ping interval for the upstream WebSocket (seconds)"
    )

    # ============================================
    # Relay / Fan-out Configuration
    # ============================================

    broadcast_send_timeout: float = Field(
        default=5.0,
        description="Maximum time a single subscriber send may take (seconds)"
    )

    # ============================================
    # Client Reconnection Configuration
    # ============================================

    client_reconnect_base_delay: float = Field(
        default=1.0,
        description="Base delay for client exponential backoff (seconds)"
    )

    client_reconnect_max_delay: float = Field(
        default=60.0,
        description="Cap applied to a single client backoff delay (seconds)"
    )

    client_max_reconnect_attempts: int = Field(
        default=5,
        description="Maximum client reconnection attempts before giving up"
    )

    price_history_size: int = Field(
        default=100,
        description="Number of price points kept per symbol for charts"
    )

    relay_ws_url: str = Field(
        default="ws://localhost:5000/ws",
        description="Relay WebSocket URL used by client tools"
    )

    # ============================================
    # Application Configuration
    # ============================================

    app_host: str = Field(
        default="0.0.0.0",
        description="FastAPI server host address"
    )

    app_port: int = Field(
        default=5000,
        description="FastAPI server port"
    )

    environment: str = Field(
        default="development",
        description="Application environment (development, production)"
    )

    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # ============================================
    # CORS / Static Files Configuration
    # ============================================

    client_url: str = Field(
        default="",
        description="Frontend origin allowed in production"
    )

    cors_origins: str = Field(
        default="http://localhost:5173",
        description="Comma-separated list of allowed CORS origins in development"
    )

    static_dir: str = Field(
        default="frontend/dist",
        description="Directory holding the built presentation bundle"
    )

    # ============================================
    # Local Preferences Configuration
    # ============================================

    preferences_path: str = Field(
        default=".cryptopulse/preferences.json",
        description="JSON file used for favorites and theme persistence"
    )

    # ============================================
    # Pydantic Settings Configuration
    # ============================================

    model_config = SettingsConfigDict(
        # Look for .env file in the project root
        env_file=".env",
        # Ignore extra fields in .env that aren't defined here
        extra="ignore",
        # Case-insensitive environment variable matching
        case_sensitive=False
    )

    # ============================================
    # Custom Properties
    # ============================================

    @property
    def symbols_list(self) -> List[str]:
        """
        Convert comma-separated symbols string to a list.

        Returns:
            List of symbol strings (e.g., ["BTCUSDT", "ETHUSDT", "SOLUSDT"])

        Example:
            >>> settings.symbols_list[:2]
            ['BTCUSDT', 'ETHUSDT']
        """
        return [s.strip().upper() for s in self.supported_symbols.split(",") if s.strip()]

    @property
    def cors_origins_list(self) -> List[str]:
        """Convert comma-separated CORS origins string to a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def allowed_origins(self) -> List[str]:
        """
        Origins passed to the CORS middleware.

        Production only trusts the deployed frontend (client_url);
        development trusts the local dev servers.
        """
        if self.is_production:
            return [self.client_url] if self.client_url else []
        return self.cors_origins_list


# ============================================
# Global Settings Instance
# ============================================

# Create a single instance of settings to be imported throughout the application
settings = Settings()


# ============================================
# Configuration Validation
# ============================================

def validate_configuration(config: Settings = None) -> None:
    """
    Validate critical configuration settings on application startup.

    Args:
        config: Settings to validate (defaults to the global settings)

    Raises:
        ValueError: If required configuration is missing or invalid
    """
    # Import logger here to avoid circular import
    # (logging.py imports config.py, so we can't import at module level)
    from core.logging import logger

    config = config or settings

    if not config.symbols_list:
        raise ValueError("SUPPORTED_SYMBOLS must contain at least one symbol")

    for symbol in config.symbols_list:
        if not symbol.isalnum():
            raise ValueError(
                f"Symbol '{symbol}' must be alphanumeric. "
                f"Please update SUPPORTED_SYMBOLS in .env"
            )

    if not config.binance_ws_url.startswith(("ws://", "wss://")):
        raise ValueError(f"Invalid BINANCE_WS_URL: '{config.binance_ws_url}'. Must be a ws:// or wss:// URL")

    if not (1 <= config.app_port <= 65535):
        raise ValueError(f"Invalid port number: {config.app_port}. Must be between 1 and 65535")

    if config.upstream_reconnect_delay <= 0:
        raise ValueError("UPSTREAM_RECONNECT_DELAY must be positive")

    if config.broadcast_send_timeout <= 0:
        raise ValueError("BROADCAST_SEND_TIMEOUT must be positive")

    if config.client_reconnect_base_delay <= 0 or config.client_reconnect_max_delay <= 0:
        raise ValueError("Client reconnect delays must be positive")

    if config.client_max_reconnect_attempts < 0:
        raise ValueError("CLIENT_MAX_RECONNECT_ATTEMPTS cannot be negative")

    if config.price_history_size < 1:
        raise ValueError("PRICE_HISTORY_SIZE must be at least 1")

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if config.log_level.upper() not in valid_log_levels:
        raise ValueError(
            f"Invalid LOG_LEVEL: '{config.log_level}'. "
            f"Must be one of: {', '.join(valid_log_levels)}"
        )

    logger.info("Configuration validated successfully")
    logger.info(f"Relaying symbols: {', '.join(config.symbols_list)}")
    logger.info(f"Binance stream: {config.binance_ws_url}")
    logger.info(f"Server: {config.app_host}:{config.app_port} ({config.environment})")
    logger.info(f"Log level: {config.log_level.upper()}")
