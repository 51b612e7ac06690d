# utils/__init__.py
"""
Utils package for the line bridge.

This package provides the pieces shared by the listener and the
forwarder: line framing, envelope construction and configuration.
"""

# Import main protocol functions and constants for easy access
from .protocol import (
    read_line,
    decode_line,
    split_host_port,
    build_message,
    encode_message,
    close_connection,
    format_message,
    IncompleteLineError,
    LineTooLongError,
    LINE_DELIMITER,
    MAX_LINE_LENGTH,
)
from .config import BridgeConfig, ConfigError, build_parser, load_config, parse_bool

# Package metadata
__version__ = "1.0.0"
__author__ = "Line Bridge"
__description__ = "Shared utilities for the TCP line bridge"

# Make commonly used functions available at package level
__all__ = [
    'read_line',
    'decode_line',
    'split_host_port',
    'build_message',
    'encode_message',
    'close_connection',
    'format_message',
    'IncompleteLineError',
    'LineTooLongError',
    'LINE_DELIMITER',
    'MAX_LINE_LENGTH',
    'BridgeConfig',
    'ConfigError',
    'build_parser',
    'load_config',
    'parse_bool',
]
