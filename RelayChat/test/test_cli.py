"""
Tests for the command-line entry point.
"""

import pytest

from RelayChat.__main__ import main, parse
from RelayChat.core.server.storage_sqlite import SQLiteCredentialStore
from RelayChat.start.client import render_line


class TestParse:

    def test_server_options(self):
        args = parse(["server", "--port", "9000", "--db", "x.db", "--auth-timeout", "5"])
        assert args.command == "server"
        assert args.port == 9000
        assert args.db == "x.db"
        assert args.auth_timeout == 5.0
        assert args.host is None

    def test_command_required(self):
        with pytest.raises(SystemExit):
            parse([])


class TestAddUser:

    def test_adduser_creates_account(self, tmp_path, capsys):
        db = str(tmp_path / "users.db")

        assert main(["adduser", "alice", "pw1", "Alice", "--db", db]) == 0
        assert main(["adduser", "alice", "pw1", "Alice", "--db", db]) == 1
        assert main(["adduser", "carol", "pw3", "Alice", "--db", db]) == 1
        assert main(["adduser", "bob", "pw2", "B|ob", "--db", db]) == 2

        store = SQLiteCredentialStore(db)
        store.connect()
        try:
            assert store.lookup_nickname("alice", "pw1") == "Alice"
            assert not store.user_exists("bob")
        finally:
            store.disconnect()
        out = capsys.readouterr().out
        assert "Login 'alice' already exists." in out
        assert "Nickname 'Alice' already exists." in out


class TestRenderLine:

    @pytest.mark.parametrize("line,expected", [
        ("BCAST|Alice|hello", "Alice: hello"),
        ("USERLIST|Alice|Bob|", "Online: Alice, Bob"),
        ("AUTH_OK|Alice", "Logged in as Alice"),
        ("AUTH_FAIL", "Login failed"),
        ("FMT_ERR|FOO|x", "Server did not understand: FOO|x"),
        ("SOMETHING", "SOMETHING"),
    ])
    def test_render(self, line, expected):
        assert render_line(line) == expected
