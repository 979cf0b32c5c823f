"""sqlnav configuration management.

Classes:
    BaseConfig: Base configuration class
    ConnectionConfig: Backend connection parameters
    LoggingConfig: Logging configuration
    SessionConfig: Session-wide settings

Example:
    >>> from sqlnav.config import SessionConfig
    >>> config = SessionConfig.from_env()
    >>> config.connect_timeout
    10.0
"""

from .models import BaseConfig, ConnectionConfig, LoggingConfig, SessionConfig

__all__ = [
    "BaseConfig",
    "ConnectionConfig",
    "LoggingConfig",
    "SessionConfig",
]
