"""
Relay settings loaded from environment variables.
Uses pydantic-settings for type-safe configuration.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Relay settings with defaults for development."""

    # Server
    host: str = "0.0.0.0"
    # Same variable the browser pages were historically served on (PORT)
    port: int = 3000

    # Environment
    environment: str = "development"
    debug: bool = True

    # Comma-separated list of allowed origins (empty allows any origin)
    allowed_origins: str = ""

    # WebSocket
    ws_path: str = "/"
    ws_liveness_interval: float = 30.0  # Seconds between liveness sweeps
    # Protocol-level ping/pong, run by the ASGI server on every socket
    ws_ping_interval: float = 30.0
    ws_ping_timeout: float = 30.0
    ws_send_timeout: float = 5.0  # Upper bound for a single outbound frame
    ws_close_timeout: float = 2.0  # Upper bound for a forced close
    ws_max_message_size: int = 64 * 1024  # 64 KB

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    def validate_production_settings(self) -> list[str]:
        """
        Check settings that must be tightened before running in production.
        Returns a list of problems. Empty list means all checks pass.
        """
        errors = []

        if self.ws_liveness_interval <= 0:
            errors.append("WS_LIVENESS_INTERVAL must be positive")

        if self.ws_ping_interval <= 0 or self.ws_ping_timeout <= 0:
            errors.append("WS_PING_INTERVAL and WS_PING_TIMEOUT must be positive")

        if self.ws_send_timeout <= 0:
            errors.append("WS_SEND_TIMEOUT must be positive")

        if self.environment == "production":
            if self.debug:
                errors.append("DEBUG must be False in production")

            if not self.allowed_origins:
                errors.append(
                    "ALLOWED_ORIGINS should be set in production (comma-separated list of allowed domains)"
                )

        return errors

    @property
    def origins(self) -> list[str]:
        """Parsed allowed origins, ["*"] when none configured."""
        parsed = [o.strip() for o in self.allowed_origins.split(",") if o.strip()]
        return parsed or ["*"]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience export
settings = get_settings()
