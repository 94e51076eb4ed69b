#!/usr/bin/env python3
"""
Unit tests for the upload client.

Covers:
- Local file validation before anything is sent
- The raw POST with the X-Filename header
- Failures mapped to UploadError
"""

import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

sys.path.insert(0, str(Path(__file__).parent.parent))

import aiohttp

from client.files.upload_client import UploadClient, UploadError

UPLOAD_URL = 'http://127.0.0.1:9000/upload'


def _mock_session(status=200, body=None, post_error=None):
    """Build a ClientSession class mock returning a canned response."""
    resp = MagicMock()
    resp.status = status
    resp.json = AsyncMock(return_value=body)

    session = MagicMock()
    if post_error is not None:
        session.post.side_effect = post_error
    else:
        session.post.return_value.__aenter__.return_value = resp

    session_cls = MagicMock()
    session_cls.return_value.__aenter__.return_value = session
    return session_cls, session


class TestReadFile(unittest.TestCase):
    """Test cases for local file validation."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)
        self.client = UploadClient(UPLOAD_URL, max_file_size=8)

    def tearDown(self):
        self.tmp.cleanup()

    def test_reads_name_and_bytes(self):
        path = self.dir / 'hello.txt'
        path.write_bytes(b'hello')
        self.assertEqual(self.client.read_file(str(path)), ('hello.txt', b'hello'))

    def test_missing_file(self):
        with self.assertRaises(UploadError):
            self.client.read_file(str(self.dir / 'nope.txt'))

    def test_directory_rejected(self):
        with self.assertRaises(UploadError):
            self.client.read_file(str(self.dir))

    def test_empty_file_rejected(self):
        path = self.dir / 'empty.txt'
        path.write_bytes(b'')
        with self.assertRaises(UploadError):
            self.client.read_file(str(path))

    def test_too_large_rejected(self):
        path = self.dir / 'big.bin'
        path.write_bytes(b'x' * 9)
        with self.assertRaisesRegex(UploadError, 'too large'):
            self.client.read_file(str(path))


class TestUpload(unittest.IsolatedAsyncioTestCase):
    """Test cases for the HTTP exchange."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / 'report.pdf'
        self.path.write_bytes(b'%PDF-1.4')
        self.client = UploadClient(UPLOAD_URL)

    def tearDown(self):
        self.tmp.cleanup()

    async def test_upload_returns_url(self):
        url = 'http://127.0.0.1:9000/files/report.pdf'
        session_cls, session = _mock_session(body={'url': url, 'filename': 'report.pdf'})

        with patch('client.files.upload_client.aiohttp.ClientSession', session_cls):
            result = await self.client.upload(str(self.path))

        self.assertEqual(result, ('report.pdf', url))
        args, kwargs = session.post.call_args
        self.assertEqual(args[0], UPLOAD_URL)
        self.assertEqual(kwargs['data'], b'%PDF-1.4')
        self.assertEqual(kwargs['headers']['X-Filename'], 'report.pdf')

    async def test_http_error_status(self):
        session_cls, _ = _mock_session(status=500, body={'error': 'boom'})
        with patch('client.files.upload_client.aiohttp.ClientSession', session_cls):
            with self.assertRaisesRegex(UploadError, '500'):
                await self.client.upload(str(self.path))

    async def test_response_without_url(self):
        session_cls, _ = _mock_session(body={'filename': 'report.pdf'})
        with patch('client.files.upload_client.aiohttp.ClientSession', session_cls):
            with self.assertRaisesRegex(UploadError, 'no url'):
                await self.client.upload(str(self.path))

    async def test_non_object_response(self):
        session_cls, _ = _mock_session(body=['http://h/files/x'])
        with patch('client.files.upload_client.aiohttp.ClientSession', session_cls):
            with self.assertRaises(UploadError):
                await self.client.upload(str(self.path))

    async def test_network_error(self):
        session_cls, _ = _mock_session(post_error=aiohttp.ClientConnectionError('refused'))
        with patch('client.files.upload_client.aiohttp.ClientSession', session_cls):
            with self.assertRaisesRegex(UploadError, 'refused'):
                await self.client.upload(str(self.path))

    async def test_invalid_file_never_posts(self):
        session_cls, session = _mock_session(body={'url': 'http://h/files/x'})
        with patch('client.files.upload_client.aiohttp.ClientSession', session_cls):
            with self.assertRaises(UploadError):
                await self.client.upload(str(Path(self.tmp.name) / 'missing.bin'))
        session.post.assert_not_called()


if __name__ == '__main__':
    unittest.main()
