# utils/config.py
"""
Runtime configuration for the line bridge.

Values come from command-line options, each falling back to an environment
variable, then to a built-in default. The bearer token is only ever read
from the TOKEN environment variable, once, when the configuration is built.
"""

import argparse
import logging
import os

DEFAULT_HOST = '127.0.0.1'
DEFAULT_PORT = '7777'
DEFAULT_URL = 'http://localhost:5000/register'
DEFAULT_TIMEOUT = 10.0
DEFAULT_MAX_CONNECTIONS = 64
TOKEN_ENV = 'TOKEN'

LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR']

_TRUE_VALUES = ('1', 't', 'true', 'y', 'yes', 'on')
_FALSE_VALUES = ('0', 'f', 'false', 'n', 'no', 'off')

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised for configuration values the bridge cannot run with."""


def parse_bool(value):
    """Parse true/false style strings (as accepted by --close=false)."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigError(f"invalid boolean value: {value!r}")


def _bool_arg(value):
    try:
        return parse_bool(value)
    except ConfigError as e:
        raise argparse.ArgumentTypeError(str(e))


class BridgeConfig:
    """Read-only settings shared by the listener, handlers and forwarder."""

    def __init__(self, port=DEFAULT_PORT, close_connection=True, url=DEFAULT_URL,
                 token='', host=DEFAULT_HOST, timeout=DEFAULT_TIMEOUT,
                 max_connections=DEFAULT_MAX_CONNECTIONS, log_level='INFO'):
        self.port = str(port)
        self.close_connection = bool(close_connection)
        self.url = url
        self.token = token or ''
        self.host = host
        self.timeout = timeout
        self.max_connections = max_connections
        self.log_level = log_level
        self.validate()

    def validate(self):
        """Check field values, raising ConfigError on the first bad one."""
        if not self.port.isdigit() or not 0 <= int(self.port) <= 65535:
            raise ConfigError(f"invalid port: {self.port!r}")
        if not self.url:
            raise ConfigError("destination url must not be empty")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {self.timeout}")
        if self.max_connections < 0:
            raise ConfigError(f"max connections must be >= 0, got {self.max_connections}")
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(f"invalid log level: {self.log_level!r}")

    @property
    def port_number(self):
        return int(self.port)

    @classmethod
    def from_args(cls, args, environ=None):
        """Build a config from parsed arguments; TOKEN is read from environ here."""
        environ = os.environ if environ is None else environ
        token = environ.get(TOKEN_ENV, '')
        if not token:
            logger.warning(f"{TOKEN_ENV} is not set; forwarded requests will carry an empty bearer token")
        return cls(
            port=args.port,
            close_connection=args.close,
            url=args.url,
            token=token,
            timeout=args.timeout,
            max_connections=args.max_connections,
            log_level=args.log_level,
        )

    def __repr__(self):
        # Never print the token itself
        return (f"BridgeConfig(host={self.host!r}, port={self.port!r}, "
                f"close_connection={self.close_connection}, url={self.url!r}, "
                f"token={'<set>' if self.token else '<unset>'}, timeout={self.timeout}, "
                f"max_connections={self.max_connections}, log_level={self.log_level!r})")


def build_parser(environ=None):
    """Build the command-line parser; defaults fall back to environment variables."""
    environ = os.environ if environ is None else environ

    parser = argparse.ArgumentParser(
        description='Line Bridge - forwards newline-terminated TCP messages as authenticated HTTP POSTs',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  TOKEN=secret %(prog)s --port=7777 --url=http://localhost:5000/register
  TOKEN=secret %(prog)s --close=false
  TOKEN=secret %(prog)s -port=7777 -close=false   (legacy single-dash form)

Test with netcat:
  echo hello | nc 127.0.0.1 7777
        """
    )

    parser.add_argument(
        '--port', '-port',
        default=environ.get('BRIDGE_PORT', DEFAULT_PORT),
        help='Port to listen on (default: 7777, env: BRIDGE_PORT)'
    )

    parser.add_argument(
        '--close', '-close',
        type=_bool_arg,
        nargs='?',
        const=True,
        default=environ.get('BRIDGE_CLOSE', 'true'),
        help='Close each connection after one message (default: true, env: BRIDGE_CLOSE)'
    )

    parser.add_argument(
        '--no-close',
        dest='close',
        action='store_false',
        help='Keep connections open for multiple messages'
    )

    parser.add_argument(
        '--url', '-url',
        default=environ.get('BRIDGE_URL', DEFAULT_URL),
        help='Destination endpoint (default: http://localhost:5000/register, env: BRIDGE_URL)'
    )

    parser.add_argument(
        '--timeout',
        type=float,
        default=environ.get('BRIDGE_TIMEOUT', str(DEFAULT_TIMEOUT)),
        help='HTTP timeout in seconds (default: 10, env: BRIDGE_TIMEOUT)'
    )

    parser.add_argument(
        '--max-connections',
        type=int,
        default=environ.get('BRIDGE_MAX_CONNECTIONS', str(DEFAULT_MAX_CONNECTIONS)),
        help='Maximum concurrent connections, 0 for unbounded (default: 64, env: BRIDGE_MAX_CONNECTIONS)'
    )

    parser.add_argument(
        '--log-level',
        choices=LOG_LEVELS,
        default=environ.get('LOG_LEVEL', 'INFO'),
        help='Set logging level (default: INFO, env: LOG_LEVEL)'
    )

    return parser


def load_config(argv=None, environ=None):
    """Parse argv and the environment into a BridgeConfig (exits on bad input)."""
    parser = build_parser(environ)
    args = parser.parse_args(argv)
    try:
        return BridgeConfig.from_args(args, environ)
    except ConfigError as e:
        parser.error(str(e))
