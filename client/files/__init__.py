"""
File transfer module for client-side file operations.

Handles:
- File uploads to the HTTP upload endpoint
"""
