"""
Client package for the real-time chat client.

This package contains all client-side functionality including:
- Session engine (history, dedup, presence)
- Connection lifecycle and reconnect backoff
- File upload
- Configuration and utilities
"""
