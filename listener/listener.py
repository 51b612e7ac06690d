#!/usr/bin/env python3
"""
Line Bridge Listener - Accepts legacy TCP clients and forwards their lines
as authenticated HTTP requests.

This server:
1. Listens on 127.0.0.1:<port> (default 7777) for plain TCP connections
2. Handles each connection in its own thread, up to a connection limit
3. Reads newline-terminated messages from the client
4. Wraps each line with the peer's address into a JSON envelope
5. POSTs the envelope to the destination URL with a bearer token
6. Closes the connection after one message, or keeps reading until the
   client disconnects, depending on the close policy
"""

import enum
import errno
import socket
import threading
import logging
import sys
import os
import time
import signal

# Add project root to path so the script can be run directly
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from forwarder.forwarder import Forwarder
from utils.config import load_config
from utils.protocol import (
    IncompleteLineError,
    LineTooLongError,
    build_message,
    close_connection,
    decode_line,
    encode_message,
    format_message,
    read_line,
    split_host_port,
)

logger = logging.getLogger(__name__)

# Accept failures that leave the listening socket usable
TRANSIENT_ACCEPT_ERRNOS = frozenset(
    code for code in (
        getattr(errno, name, None) for name in (
            'EAGAIN', 'EWOULDBLOCK', 'EINTR', 'ECONNABORTED', 'ECONNRESET',
            'EMFILE', 'ENFILE', 'ENOBUFS', 'ENOMEM', 'EPROTO', 'EPERM',
        )
    ) if code is not None
)

# Pause after a transient accept failure (fd exhaustion would spin otherwise)
ACCEPT_RETRY_DELAY = 0.1
ACCEPT_POLL_INTERVAL = 0.5


class AcceptError(enum.Enum):
    """How the accept loop reacts to a failed accept()."""
    TRANSIENT = 'transient'
    FATAL = 'fatal'


class BindError(OSError):
    """The listening socket could not be created or bound."""


def classify_accept_error(error):
    """Map an exception raised by accept() to an AcceptError."""
    if isinstance(error, socket.timeout):
        return AcceptError.TRANSIENT
    if isinstance(error, OSError) and error.errno in TRANSIENT_ACCEPT_ERRNOS:
        return AcceptError.TRANSIENT
    return AcceptError.FATAL


class LineBridgeServer:
    """
    TCP listener that forwards each received line through a Forwarder.
    """

    def __init__(self, config, forwarder=None):
        self.config = config
        self.host = config.host
        self.port = config.port_number
        self.close_after_message = config.close_connection
        self.forwarder = forwarder if forwarder is not None else Forwarder.from_config(config)
        self.server_socket = None
        self.running = False
        self.ready = threading.Event()
        if config.max_connections:
            self.connection_slots = threading.BoundedSemaphore(config.max_connections)
        else:
            self.connection_slots = None

    @property
    def server_address(self):
        """Actually bound (host, port), useful when port 0 was requested."""
        if self.server_socket is None:
            return None
        return self.server_socket.getsockname()[:2]

    def bind(self):
        """Create and bind the listening socket."""
        try:
            self.server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            self.server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            self.server_socket.bind((self.host, self.port))
            self.server_socket.listen(socket.SOMAXCONN)
            # Poll so stop() is noticed while no client is connecting
            self.server_socket.settimeout(ACCEPT_POLL_INTERVAL)
        except OSError as e:
            close_connection(self.server_socket)
            self.server_socket = None
            raise BindError(f"Cannot listen on {self.host}:{self.port}: {e}") from e

        host, port = self.server_address
        logger.info(f"Serving {host}:{port}")

    def start(self):
        """
        Bind and run the accept loop until stopped.

        Returns:
            bool: True after a requested shutdown, False if the listener
            failed and had to stop

        Raises:
            BindError: The socket could not be bound
        """
        if self.server_socket is None:
            self.bind()
        self.running = True
        self.ready.set()

        try:
            return self.serve_forever()
        finally:
            self.stop()

    def serve_forever(self):
        """Accept connections and hand each one to its own handler thread."""
        while self.running:
            if not self.acquire_slot():
                continue

            listening_socket = self.server_socket
            if listening_socket is None:
                self.release_slot()
                return True

            try:
                client_socket, address = listening_socket.accept()
            except socket.timeout:
                self.release_slot()
                continue
            except OSError as e:
                self.release_slot()
                if not self.running:
                    # stop() closed the socket under us
                    return True
                if classify_accept_error(e) is AcceptError.TRANSIENT:
                    logger.warning(f"Transient error accepting connection: {e}")
                    time.sleep(ACCEPT_RETRY_DELAY)
                    continue
                logger.error(f"Fatal error accepting connection: {e}")
                return False

            logger.info(f"Accepted connection from {address[0]}:{address[1]}")

            handler_thread = threading.Thread(
                target=self.handle_connection,
                args=(client_socket, address),
                daemon=True
            )
            try:
                handler_thread.start()
            except RuntimeError as e:
                logger.error(f"Cannot start handler for {address[0]}:{address[1]}: {e}")
                close_connection(client_socket)
                self.release_slot()

        return True

    def acquire_slot(self):
        """Wait for a free connection slot; False if the server stopped meanwhile."""
        if self.connection_slots is None:
            return True
        while self.running:
            if self.connection_slots.acquire(timeout=0.5):
                if self.running:
                    return True
                self.connection_slots.release()
        return False

    def release_slot(self):
        if self.connection_slots is not None:
            self.connection_slots.release()

    def handle_connection(self, client_socket, address):
        """Read lines from one client and forward each of them."""
        accepted_ip, accepted_port, _ = split_host_port(address)
        connection_id = f"{accepted_ip}:{accepted_port}"
        try:
            peer = address
            try:
                peer = client_socket.getpeername()
            except OSError as e:
                logger.warning(f"Cannot read peer address, using accept() address: {e}")

            ip_from, port, error = split_host_port(peer)
            if error is not None:
                logger.warning(f"Cannot split peer address {peer!r}: {error}")
            connection_id = f"{ip_from}:{port}"

            reader = client_socket.makefile('rb')
            try:
                self.process_lines(reader, ip_from, port, connection_id)
            finally:
                reader.close()

        except Exception as e:
            logger.error(f"[{connection_id}] Error handling connection: {e}")
        finally:
            close_connection(client_socket)
            self.release_slot()
            logger.info(f"Connection from {connection_id} closed")

    def process_lines(self, reader, ip_from, port, connection_id):
        """Forward lines until the peer leaves, a read fails, or the close policy ends it."""
        while True:
            try:
                data = read_line(reader)
            except IncompleteLineError as e:
                logger.warning(f"[{connection_id}] Dropping unterminated line: {e}")
                return
            except LineTooLongError as e:
                logger.warning(f"[{connection_id}] Closing connection: {e}")
                return
            except OSError as e:
                logger.error(f"[{connection_id}] Read error: {e}")
                return

            if data is None:
                logger.debug(f"[{connection_id}] Peer disconnected")
                return

            self.process_line(data, ip_from, port, connection_id)

            if self.close_after_message:
                return

    def process_line(self, data, ip_from, port, connection_id):
        """Build, serialize and forward the envelope for one raw line."""
        message = build_message(decode_line(data), ip_from, port)
        logger.info(f"[{connection_id}] Making request with {format_message(message)}")

        try:
            payload = encode_message(message)
        except (TypeError, ValueError) as e:
            logger.error(f"[{connection_id}] Cannot serialize message, dropping it: {e}")
            return None

        return self.forwarder.forward(payload, connection_id)

    def stop(self):
        """Stop accepting connections. Handlers already running are left to finish."""
        if self.running:
            logger.info("Stopping Line Bridge Listener...")
        self.running = False

        if self.server_socket:
            try:
                self.server_socket.close()
            except OSError as e:
                logger.error(f"Error closing listening socket: {e}")
            self.server_socket = None


def signal_handler(signum, frame):
    """Handle shutdown signals."""
    logger.info(f"Received signal {signum}")
    global server_instance
    if server_instance:
        server_instance.stop()
    sys.exit(0)


# Global server instance for signal handling
server_instance = None


def main(argv=None):
    """Main function with command line argument parsing."""
    global server_instance

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    config = load_config(argv)

    # Configure logging level
    logging.getLogger().setLevel(getattr(logging, config.log_level))
    logger.debug(f"Configuration: {config!r}")

    # Set up signal handlers for graceful shutdown
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    server_instance = LineBridgeServer(config)

    try:
        logger.info("Starting Line Bridge Listener...")
        if not server_instance.start():
            sys.exit(1)
    except BindError as e:
        logger.error(f"{e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
    finally:
        if server_instance:
            server_instance.stop()


if __name__ == "__main__":
    main()
