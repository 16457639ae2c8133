"""
Shared module for cross-cutting concerns of the relay.

- shared.config: Configuration
  - settings.py: Environment config (pydantic-settings)
  - logging.py: Structured logging

- shared.infrastructure: Runtime plumbing
  - correlation.py: Connection id propagation into log records

IMPORT EXAMPLES:
    from shared.config.settings import settings
    from shared.config.logging import get_logger
    from shared.infrastructure.correlation import bind_connection_id
"""
