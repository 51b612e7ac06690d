# utils/protocol.py
"""
Line protocol spoken by the legacy client, and the JSON envelope sent on.

Inbound framing:
    <UTF-8 text>\\n

- One message per line, terminated by a single newline
- No handshake, no length prefix, no acknowledgment

Outbound envelope (compact JSON):
    {"body": "<line>", "ipFrom": "<peer ip>", "port": "<peer port>"}
"""

import json
import socket
import logging

# Line delimiter and inbound encoding
LINE_DELIMITER = b'\n'
ENCODING = 'utf-8'

# Longest line accepted, newline excluded
MAX_LINE_LENGTH = 64 * 1024

# Envelope field names
FIELD_BODY = 'body'
FIELD_IP_FROM = 'ipFrom'
FIELD_PORT = 'port'

logger = logging.getLogger(__name__)


class IncompleteLineError(EOFError):
    """Peer closed the stream in the middle of a line."""

    def __init__(self, partial):
        super().__init__(f"Connection closed after {len(partial)} bytes without a newline")
        self.partial = partial


class LineTooLongError(OSError):
    """Peer sent more than the allowed number of bytes without a newline."""

    def __init__(self, max_length):
        super().__init__(f"Line exceeds {max_length} bytes without a newline")
        self.max_length = max_length


def read_line(reader, max_length=MAX_LINE_LENGTH):
    """
    Read one newline-terminated line from a buffered socket reader.

    Args:
        reader: Binary file object from sock.makefile('rb')
        max_length: Longest line accepted, newline excluded

    Returns:
        bytes: The line including its trailing newline, or None on clean EOF

    Raises:
        IncompleteLineError: EOF arrived after a partial line
        LineTooLongError: No newline within max_length bytes
        OSError: The underlying read failed
    """
    data = reader.readline(max_length + 1)
    if not data:
        return None
    if not data.endswith(LINE_DELIMITER):
        if len(data) > max_length:
            raise LineTooLongError(max_length)
        raise IncompleteLineError(data)
    return data


def decode_line(data):
    """Decode a raw line and strip trailing whitespace and the newline."""
    return data.decode(ENCODING, errors='replace').rstrip()


def split_host_port(address):
    """
    Split a peer address into (host, port) strings.

    Accepts the (host, port[, flowinfo, scope_id]) tuples returned by
    socket.getpeername() as well as "host:port" and "[v6]:port" strings.

    Returns:
        tuple: (host, port, error) - error is None when parsing succeeded,
        otherwise unparsed fields are empty strings
    """
    if isinstance(address, (tuple, list)):
        if len(address) >= 2:
            return str(address[0]), str(address[1]), None
        if len(address) == 1:
            return str(address[0]), '', ValueError(f"missing port in address {address!r}")
        return '', '', ValueError("empty address")

    text = str(address) if address is not None else ''
    if text.startswith('['):
        end = text.find(']')
        if end == -1:
            return '', '', ValueError(f"missing ']' in address {text!r}")
        host = text[1:end]
        rest = text[end + 1:]
        if not rest.startswith(':') or not rest[1:]:
            return host, '', ValueError(f"missing port in address {text!r}")
        return host, rest[1:], None

    if text.count(':') != 1:
        reason = "missing port in" if ':' not in text else "too many colons in"
        return text, '', ValueError(f"{reason} address {text!r}")

    host, port = text.split(':', 1)
    return host, port, None


def build_message(body, ip_from, port):
    """Build the envelope forwarded for one received line."""
    return {
        FIELD_BODY: body,
        FIELD_IP_FROM: ip_from,
        FIELD_PORT: port,
    }


def encode_message(message):
    """
    Serialize an envelope to compact JSON bytes.

    Raises:
        TypeError, ValueError: The message is not JSON serializable
    """
    return json.dumps(message, separators=(',', ':'), allow_nan=False).encode(ENCODING)


def close_connection(sock):
    """
    Safely close a socket connection.

    Args:
        sock: Socket to close
    """
    try:
        if sock:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                # Peer already gone
                pass
            sock.close()
            logger.debug("Connection closed")
    except Exception as e:
        logger.error(f"Error closing connection: {e}")


# Helper function for debugging
def format_message(message, max_length=200):
    """
    Format an envelope for logging (truncate long bodies).

    Args:
        message: Envelope dict
        max_length: Maximum body length to display

    Returns:
        str: Formatted message for logging
    """
    body = message.get(FIELD_BODY, '')
    if len(body) > max_length:
        body = body[:max_length] + '...'
    return (f"{{{FIELD_BODY}: {body!r}, {FIELD_IP_FROM}: {message.get(FIELD_IP_FROM, '')}, "
            f"{FIELD_PORT}: {message.get(FIELD_PORT, '')}}}")
