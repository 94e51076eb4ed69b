#!/usr/bin/env python3
"""
Chat Client - Main Entry Point

Console client for the real-time chat broker.

Usage:
    python main_client.py [--username NAME] [--server-ip HOST] [--port PORT]
"""

import sys
import os
import argparse
import asyncio
import logging

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from client.main_client import main as run_console
from client.utils.config import ClientConfig
from client.utils.logger import logger
from common.constants import DEFAULT_HOST, DEFAULT_WS_PORT, DEFAULT_UPLOAD_PORT


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Real-time Chat Client')
    parser.add_argument('--username', type=str, default=None,
                        help='Username for chat (default: asked on start)')
    parser.add_argument('--server-ip', type=str, default=DEFAULT_HOST,
                        help=f'Server IP address (default: {DEFAULT_HOST})')
    parser.add_argument('--port', type=int, default=DEFAULT_WS_PORT,
                        help=f'WebSocket port (default: {DEFAULT_WS_PORT})')
    parser.add_argument('--upload-port', type=int, default=DEFAULT_UPLOAD_PORT,
                        help=f'File upload HTTP port (default: {DEFAULT_UPLOAD_PORT})')
    parser.add_argument('--log-level', type=str, default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level (default: INFO)')
    return parser


def main(argv=None):
    """Main entry point."""
    args = build_parser().parse_args(argv)
    logger.set_level(getattr(logging, args.log_level))

    config = ClientConfig(
        host=args.server_ip,
        ws_port=args.port,
        upload_port=args.upload_port,
        username=args.username
    )

    try:
        asyncio.run(run_console(config))
    except KeyboardInterrupt:
        print("\n[INFO] Interrupted by user")


if __name__ == "__main__":
    main()
