"""
Client logging module.

This module handles client-side logging functionality.
"""

import logging
import sys


class ClientLogger:
    """Client logging class."""

    def __init__(self, log_level: int = logging.INFO):
        self.logger = logging.getLogger('chat_client')
        self.logger.setLevel(log_level)

        # Remove existing handlers
        for handler in self.logger.handlers[:]:
            self.logger.removeHandler(handler)

        # Create console handler
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level)

        # Create formatter
        formatter = logging.Formatter(
            '%(asctime)s [%(levelname)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        console_handler.setFormatter(formatter)

        # Add handler to logger
        self.logger.addHandler(console_handler)

    def set_level(self, log_level: int):
        """Change the level of the logger and its handlers."""
        self.logger.setLevel(log_level)
        for handler in self.logger.handlers:
            handler.setLevel(log_level)

    def info(self, message: str):
        """Log info message."""
        self.logger.info(message)

    def error(self, message: str):
        """Log error message."""
        self.logger.error(message)

    def warning(self, message: str):
        """Log warning message."""
        self.logger.warning(message)

    def debug(self, message: str):
        """Log debug message."""
        self.logger.debug(message)

    def log_state_change(self, old_state, new_state, attempt: int):
        """Log a connection state transition."""
        self.info(f"Connection {old_state.value} -> {new_state.value} (attempt={attempt})")

    def log_retry(self, attempt: int, delay: float):
        """Log a scheduled reconnect."""
        self.info(f"Reconnecting in {delay:g}s (attempt {attempt})")

    def log_frame_dropped(self, reason: str, frame=None):
        """Log an inbound frame that could not be decoded."""
        preview = repr(frame)[:120] if frame is not None else ''
        self.warning(f"Dropped malformed frame: {reason} {preview}".rstrip())

    def log_duplicate(self, msg_id: str):
        """Log an inbound frame discarded as already seen."""
        self.debug(f"Discarded duplicate message id={msg_id}")

    def log_send_skipped(self, msg_type: str):
        """Log a frame dropped because the socket is not open."""
        self.debug(f"Socket not open, dropped outgoing {msg_type} frame")

    def log_upload(self, filename: str, size: int):
        """Log file upload attempt."""
        self.info(f"Uploading file: {filename} ({size} bytes)")

    def log_error(self, operation: str, error: Exception):
        """Log error with operation context."""
        self.error(f"Error in {operation}: {error}")


# Global logger instance
logger = ClientLogger()
