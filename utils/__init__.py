"""Shared utilities for the backend."""
from utils.logging import configure_logging, get_logger
from utils.serialization import columns_to_camel, jsonable, to_camel_key

__all__ = [
    "configure_logging",
    "get_logger",
    "columns_to_camel",
    "jsonable",
    "to_camel_key",
]
