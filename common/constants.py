"""
Shared constants for the real-time chat client.

This module contains all constants used across the protocol and client components.
"""

# Network Configuration
DEFAULT_HOST = 'localhost'
DEFAULT_WS_PORT = 8080
DEFAULT_UPLOAD_PORT = 9000
UPLOAD_PATH = '/upload'
FILES_PATH = '/files/'

# Reconnect backoff (seconds)
RECONNECT_DELAY_BASE = 1.0
RECONNECT_DELAY_MAX = 30.0

# File Transfer
MAX_FILE_SIZE = 100 * 1024 * 1024  # 100 MB
UPLOAD_TIMEOUT = 300  # 5 minutes in seconds
FILENAME_HEADER = 'X-Filename'

# Reserved sender name for server-originated notices
SYSTEM_SENDER = '[system]'

# File reference marker embedded in chat content
FILE_MARKER_PREFIX = '📎'
FILE_MARKER_SEPARATOR = '—'

# Wire field names
FIELD_ID = 'id'
FIELD_TYPE = 'type'
FIELD_SENDER = 'sender'
FIELD_TARGET_USER = 'targetUser'
FIELD_CONTENT = 'content'
