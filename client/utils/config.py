"""
Client configuration module.

This module handles client-side configuration settings.
"""

from common.constants import (
    DEFAULT_HOST, DEFAULT_WS_PORT, DEFAULT_UPLOAD_PORT, UPLOAD_PATH,
    RECONNECT_DELAY_BASE, RECONNECT_DELAY_MAX, MAX_FILE_SIZE, UPLOAD_TIMEOUT
)


class ClientConfig:
    """Client configuration class."""

    def __init__(self, host: str = DEFAULT_HOST, ws_port: int = DEFAULT_WS_PORT,
                 upload_port: int = DEFAULT_UPLOAD_PORT, username: str = None):
        self.host = host
        self.ws_port = ws_port
        self.upload_port = upload_port
        self.username = username or ''

        # Reconnect settings
        self.reconnect_delay_base = RECONNECT_DELAY_BASE
        self.reconnect_delay_max = RECONNECT_DELAY_MAX

        # File transfer settings
        self.max_file_size = MAX_FILE_SIZE
        self.upload_timeout = UPLOAD_TIMEOUT

    @property
    def ws_url(self) -> str:
        """WebSocket endpoint of the message broker."""
        return f"ws://{self.host}:{self.ws_port}"

    @property
    def upload_url(self) -> str:
        """HTTP endpoint accepting raw file uploads."""
        return f"http://{self.host}:{self.upload_port}{UPLOAD_PATH}"

    def get_connection_info(self):
        """Get connection information."""
        return {
            'host': self.host,
            'ws_port': self.ws_port,
            'upload_port': self.upload_port,
            'username': self.username
        }

    def get_backoff_settings(self):
        """Get reconnect backoff settings."""
        return {
            'base': self.reconnect_delay_base,
            'maximum': self.reconnect_delay_max
        }
