# listener/__init__.py
"""
Line Bridge Listener Package

This package contains the TCP side of the line bridge that:
- Listens on the loopback interface for legacy line-based clients
- Handles every connection in its own thread, bounded by a connection limit
- Wraps each newline-terminated line with the peer's address as JSON
- Hands the envelope to the forwarder for delivery over HTTP
- Closes after one message or keeps reading, per the close policy

Main Components:
- listener.py: Accept loop, connection handler and command-line entry point

Usage:
    TOKEN=secret python listener/listener.py --port=7777 --url=http://localhost:5000/register

    Test with netcat: echo hello | nc 127.0.0.1 7777
"""

from .listener import LineBridgeServer, AcceptError, BindError, classify_accept_error, main

__version__ = "1.0.0"
__author__ = "Line Bridge Team"
__description__ = "TCP listener for the line bridge"

# Export main classes for external use
__all__ = ['LineBridgeServer', 'AcceptError', 'BindError', 'classify_accept_error', 'main']
