# tests/__init__.py
"""
Test Suite for the TCP Line Bridge

Test Modules:
- test_protocol.py: Line framing, address splitting and envelope encoding
- test_config.py: Command-line options, environment fallbacks, validation
- test_forwarder.py: Authenticated POSTs and response handling
- test_listener.py: Accept loop, close policy and per-connection behavior
- test_bridge_process.py: The command-line entry point run as a subprocess

Usage:
    # Run all tests
    pytest tests/

    # Run specific test module
    pytest tests/test_listener.py -v

    # Run specific test class
    pytest tests/test_listener.py::TestClosePolicy -v

Test Requirements:
- pytest >= 7.0.0
- requests >= 2.28.0
- No network access: the destination is a local recording HTTP server
"""

import sys
import os

# Add project root to Python path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

__version__ = "1.0.0"
__author__ = "Line Bridge Team"
__description__ = "Test suite for the TCP line bridge"

# Test configuration constants
TEST_CONFIG = {
    'BRIDGE_HOST': '127.0.0.1',
    'TOKEN': 'test-token-123',
    'DEFAULT_TIMEOUT': 5,
    'STARTUP_WAIT_TIME': 5,
}

__all__ = ['TEST_CONFIG']
