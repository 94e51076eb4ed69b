#!/usr/bin/env python3
"""
Unit tests for the console front-end.

Covers:
- Command parsing
- Rendering of history entries
- Typed lines turned into engine intents
"""

import io
import sys
import unittest
from datetime import datetime
from pathlib import Path
from unittest.mock import AsyncMock, Mock

sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from client.chat.session_engine import SessionEngine
from client.main_client import ChatConsole, format_message, parse_command
from client.utils.config import ClientConfig
from common.protocol_definitions import Message, MessageType, format_file_marker
from fakes import FakeScheduler, FakeTransportFactory

NOON = datetime(2024, 5, 1, 12, 0, 0)


class TestParseCommand(unittest.TestCase):

    def test_plain_text_is_broadcast(self):
        self.assertEqual(parse_command('hello world\n'), ('say', ('hello world',)))

    def test_private_message(self):
        self.assertEqual(parse_command('/msg bob see you at 5'), ('msg', ('bob', 'see you at 5')))

    def test_private_message_missing_text(self):
        self.assertEqual(parse_command('/msg bob'), ('msg', ('bob', '')))

    def test_upload(self):
        self.assertEqual(parse_command('/upload ~/notes.txt'), ('upload', ('~/notes.txt',)))

    def test_simple_commands(self):
        for line, name in [('/users', 'users'), ('/QUIT', 'quit'), ('/reconnect', 'reconnect')]:
            self.assertEqual(parse_command(line), (name, ()))


class TestFormatMessage(unittest.TestCase):

    def test_broadcast(self):
        message = Message(type=MessageType.BROADCAST, sender='bob', content='hi', received_at=NOON)
        self.assertEqual(format_message(message), '[12:00:00] bob: hi')

    def test_local_echo_marked(self):
        message = Message(type=MessageType.BROADCAST, sender='alice', content='hi',
                          received_at=NOON, local=True)
        self.assertTrue(format_message(message).endswith('(sending)'))

    def test_presence_lines(self):
        login = Message(type=MessageType.LOGIN, sender='bob', received_at=NOON)
        logout = Message(type=MessageType.LOGOUT, sender='bob', received_at=NOON)
        self.assertIn('bob joined', format_message(login))
        self.assertIn('bob left', format_message(logout))

    def test_private(self):
        message = Message(type=MessageType.PRIVATE, sender='bob', target_user='alice',
                          content='psst', received_at=NOON)
        self.assertIn('bob → alice: psst', format_message(message))

    def test_file_reference(self):
        content = format_file_marker('a.txt', 'http://h:9000/files/a.txt')
        message = Message(type=MessageType.BROADCAST, sender='bob', content=content, received_at=NOON)
        self.assertEqual(format_message(message), '[12:00:00] bob: shared a.txt: http://h:9000/files/a.txt')

    def test_system_notice(self):
        message = Message(type=MessageType.BROADCAST, sender='[system]', content='bob joined.',
                          received_at=NOON)
        self.assertEqual(format_message(message), '[12:00:00] * bob joined.')


class TestClientConfig(unittest.TestCase):

    def setUp(self):
        self.config = ClientConfig(host='10.0.0.5', ws_port=8181, upload_port=9191, username='alice')

    def test_endpoints(self):
        self.assertEqual(self.config.ws_url, 'ws://10.0.0.5:8181')
        self.assertEqual(self.config.upload_url, 'http://10.0.0.5:9191/upload')

    def test_connection_info(self):
        self.assertEqual(self.config.get_connection_info(), {
            'host': '10.0.0.5', 'ws_port': 8181, 'upload_port': 9191, 'username': 'alice'
        })

    def test_backoff_settings_default(self):
        self.assertEqual(ClientConfig().get_backoff_settings(), {'base': 1.0, 'maximum': 30.0})

    def test_engine_uses_config_backoff(self):
        self.config.reconnect_delay_base = 0.5
        self.config.reconnect_delay_max = 4.0
        factory = FakeTransportFactory()
        scheduler = FakeScheduler()
        engine = ChatConsole.build_engine(self.config, transport_factory=factory, scheduler=scheduler)

        self.assertEqual(engine.uploader.upload_url, 'http://10.0.0.5:9191/upload')
        engine.login('alice')
        delays = []
        for _ in range(5):
            factory.latest.drop()
            delays.append(scheduler.pending[-1].delay)
            scheduler.fire_next()
        self.assertEqual(delays, [0.5, 1.0, 2.0, 4.0, 4.0])


class TestChatConsole(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.factory = FakeTransportFactory()
        self.uploader = Mock()
        self.engine = SessionEngine(self.factory, scheduler=FakeScheduler(), uploader=self.uploader)
        self.out = io.StringIO()
        self.console = ChatConsole(ClientConfig(), engine=self.engine, out=self.out)
        self.engine.login('alice')
        self.transport = self.factory.latest
        self.transport.accept()

    async def test_plain_line_broadcasts(self):
        self.assertTrue(await self.console.handle_line('hello'))
        self.assertEqual(self.transport.sent_json()[-1]['content'], 'hello')
        self.assertIn('alice: hello (sending)', self.out.getvalue())

    async def test_private_line(self):
        await self.console.handle_line('/msg bob hi bob')
        wire = self.transport.sent_json()[-1]
        self.assertEqual((wire['type'], wire['targetUser'], wire['content']), ('PRIVATE', 'bob', 'hi bob'))

    async def test_private_without_target_reports_status(self):
        await self.console.handle_line('/msg  ')
        self.assertEqual(self.engine.messages, ())

    async def test_upload_line(self):
        self.uploader.upload = AsyncMock(return_value=('a.txt', 'http://h:9000/files/a.txt'))
        await self.console.handle_line('/upload a.txt')
        self.uploader.upload.assert_awaited_once_with('a.txt')
        self.assertIn('shared a.txt', self.out.getvalue())

    async def test_users_line(self):
        self.transport.deliver({'id': 'l1', 'type': 'LOGIN', 'sender': 'bob', 'content': ''})
        await self.console.handle_line('/users')
        self.assertIn('Active users (1): bob', self.out.getvalue())

    async def test_quit(self):
        self.assertFalse(await self.console.handle_line('/quit'))

    async def test_unknown_command(self):
        await self.console.handle_line('/dance')
        self.assertIn('Unknown command /dance', self.out.getvalue())

    async def test_run_without_username_logs_plain_error(self):
        console = ChatConsole(ClientConfig(), engine=SessionEngine(FakeTransportFactory(),
                                                                   scheduler=FakeScheduler()),
                              out=io.StringIO())
        with self.assertLogs('chat_client', level='ERROR') as logs:
            await console.run('   ')
        self.assertEqual(logs.records[-1].getMessage(), 'Login requires a username')

    async def test_state_changes_printed(self):
        self.transport.drop()
        self.assertIn('-- Reconnecting (attempt 1', self.out.getvalue())


if __name__ == '__main__':
    unittest.main()
