"""Flow editor configuration and logging setup."""

import logging
from functools import lru_cache

import structlog
from pydantic_settings import BaseSettings, SettingsConfigDict


class EditorSettings(BaseSettings):
    """Editor settings, overridable through FLOW_EDITOR_* environment variables."""

    model_config = SettingsConfigDict(env_prefix="FLOW_EDITOR_", case_sensitive=False)

    # Step box size used by the layout
    node_width: float = 250
    node_height: float = 150

    # Gaps between boxes in the same rank / between ranks
    node_sep: float = 100
    rank_sep: float = 100

    # Barycenter passes (down + up counts as two) when ordering ranks
    ordering_sweeps: int = 4

    # Logging
    log_level: str = "info"
    log_json: bool = False


@lru_cache
def get_settings() -> EditorSettings:
    """Get the process-wide settings, read from the environment once."""
    return EditorSettings()


def configure_logging(settings: EditorSettings | None = None) -> None:
    """Install the structlog processor chain for the given settings."""
    settings = settings or get_settings()
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.log_json
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", level=level)
