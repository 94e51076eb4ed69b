"""
Chat module for client-side session state.

Handles:
- Optimistic local echo of sent messages
- Deduplication of broker echoes
- Presence derived from LOGIN/LOGOUT
- Snapshots for the view layer
"""
