"""Configuration sources and run history storage."""

from .config_store import ConfigStore, InMemoryConfigStore, InMemoryRunRecorder, RunRecorder
from .repository import SqlConfigStore, SqlRunRecorder, create_session_factory

__all__ = [
    "ConfigStore",
    "InMemoryConfigStore",
    "InMemoryRunRecorder",
    "RunRecorder",
    "SqlConfigStore",
    "SqlRunRecorder",
    "create_session_factory",
]
