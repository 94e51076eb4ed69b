"""
Connection module for the broker socket.

Handles:
- Connection state machine
- Reconnect with exponential backoff
- WebSocket transport
"""
