# forwarder/__init__.py
"""
Forwarder Package

Turns line-bridge envelopes into authenticated HTTP requests:
- POSTs each JSON payload to the configured destination URL
- Sends "Authorization: Bearer <TOKEN>" and "Content-Type: application/json"
- Logs the destination's "status" field, or the status line on failure
- Never retries and never reports back to the TCP peer

Main Components:
- forwarder.py: Forwarder class and the success predicate for status codes
"""

from .forwarder import Forwarder, ForwardResult, is_success, build_headers

__version__ = "1.0.0"
__author__ = "Line Bridge Team"
__description__ = "HTTP forwarder for the TCP line bridge"

__all__ = ['Forwarder', 'ForwardResult', 'is_success', 'build_headers']
