#!/usr/bin/env python3
"""
Forwarder - Delivers line-bridge envelopes to the destination endpoint.

For every payload it:
1. Issues one HTTP POST with a bearer token and a JSON content type
2. Waits for the response (bounded by the configured timeout)
3. Logs the destination's "status" field on success, the status line otherwise
4. Never retries; a failed delivery is logged and the message is lost
"""

import logging
from http import HTTPStatus

import requests

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = 'application/json'


def is_success(status_code):
    """Return True when a numeric HTTP status code means the message was accepted."""
    return 200 <= status_code < 300


def build_headers(token):
    """Headers sent with every forwarded message."""
    return {
        'Authorization': f"Bearer {token}",
        'Content-Type': JSON_CONTENT_TYPE,
    }


def status_line(response):
    """Render a response's status as "<code> <reason>", e.g. "200 OK"."""
    reason = response.reason
    if not reason:
        try:
            reason = HTTPStatus(response.status_code).phrase
        except ValueError:
            reason = ''
    return f"{response.status_code} {reason}".strip()


class ForwardResult:
    """Outcome of one delivery that reached the destination."""

    def __init__(self, status_code, status_line, ok, status=None):
        self.status_code = status_code
        self.status_line = status_line
        self.ok = ok
        self.status = status

    def __repr__(self):
        return (f"ForwardResult(status_code={self.status_code}, ok={self.ok}, "
                f"status={self.status!r})")


class Forwarder:
    """
    Posts JSON payloads to a fixed destination with a fixed bearer token.

    Holds only read-only settings, so one instance is shared by every
    connection handler thread.
    """

    def __init__(self, url, token='', timeout=10.0):
        self.url = url
        self.timeout = timeout
        self.headers = build_headers(token)

    @classmethod
    def from_config(cls, config):
        return cls(config.url, token=config.token, timeout=config.timeout)

    def forward(self, payload, connection_id='-'):
        """
        POST one JSON payload to the destination.

        Args:
            payload: JSON bytes or text
            connection_id: Prefix for log lines

        Returns:
            ForwardResult, or None when the request never got a response
        """
        try:
            response = requests.post(
                self.url,
                data=payload,
                headers=self.headers,
                timeout=self.timeout
            )
        except requests.exceptions.Timeout:
            logger.error(f"[{connection_id}] Timeout posting to {self.url} after {self.timeout}s")
            return None
        except requests.exceptions.ConnectionError as e:
            logger.error(f"[{connection_id}] Connection error posting to {self.url}: {e}")
            return None
        except requests.exceptions.RequestException as e:
            logger.error(f"[{connection_id}] Error posting to {self.url}: {e}")
            return None

        try:
            return self.handle_response(response, connection_id)
        finally:
            response.close()

    def handle_response(self, response, connection_id='-'):
        """Log the destination's answer and summarize it."""
        line = status_line(response)

        if not is_success(response.status_code):
            logger.warning(f"[{connection_id}] Response status: {line}")
            return ForwardResult(response.status_code, line, ok=False)

        status = None
        try:
            result = response.json()
        except ValueError as e:
            logger.warning(f"[{connection_id}] {line} with non-JSON body: {e}")
        else:
            if isinstance(result, dict):
                status = result.get('status')
                logger.info(f"[{connection_id}] Destination status: {status}")
            else:
                logger.warning(f"[{connection_id}] {line} with unexpected JSON body: {result!r}")

        return ForwardResult(response.status_code, line, ok=True, status=status)
