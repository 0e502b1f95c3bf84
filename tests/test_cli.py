"""
Tests for the command line interface.
"""

import re

import pytest
from click.testing import CliRunner

from music_collection.cli import cli

ID = re.compile(r"[0-9a-f]{32}")
TOKEN = re.compile(r"export MUSIC_COLLECTION_TOKEN=(\S+)")


@pytest.fixture
def runner(tmp_path):
    """CliRunner bound to a throwaway data directory and a fast hash."""
    runner = CliRunner()
    env = {
        "MUSIC_COLLECTION_PASSWORD_SCHEME": "pbkdf2_sha256",
        "MUSIC_COLLECTION_TOKEN": None,
    }

    def invoke(*args, token=None, input=None):
        return runner.invoke(
            cli,
            ["--data-dir", str(tmp_path), *(["--token", token] if token else []), *args],
            env=env,
            input=input,
        )
    return invoke


def register(invoke, username: str) -> str:
    result = invoke("register", username, f"{username}@example.com", "--password", "correct-horse")
    assert result.exit_code == 0, result.output
    return TOKEN.search(result.output).group(1)


class TestAccounts:
    """Test register, login and whoami."""

    def test_register_prints_token(self, runner):
        token = register(runner, "alice")
        assert token.count(".") == 2

    def test_whoami(self, runner):
        token = register(runner, "alice")
        result = runner("whoami", token=token)
        assert result.exit_code == 0
        assert "alice@example.com" in result.output

    def test_whoami_without_token(self, runner):
        result = runner("whoami")
        assert result.exit_code == 1
        assert "not logged in" in result.output

    def test_login_with_wrong_password(self, runner):
        register(runner, "alice")
        result = runner("login", "alice@example.com", "--password", "wrong-password")
        assert result.exit_code == 1
        assert "Invalid credentials" in result.output

    def test_duplicate_registration(self, runner):
        register(runner, "alice")
        result = runner("register", "alice", "alice@example.com", "--password", "correct-horse")
        assert result.exit_code == 1
        assert "409" in result.output


class TestTracksAndPlaylists:
    """Test that state persists across invocations."""

    def test_track_lifecycle(self, runner):
        token = register(runner, "alice")

        result = runner("track", "add", "Song", "Band", "185", "https://x/y.mp3", "--public", "--tag", "live", token=token)
        assert result.exit_code == 0, result.output
        track_id = ID.search(result.output).group(0)

        result = runner("track", "play", track_id)
        assert "Play count: 1" in result.output

        result = runner("track", "show", track_id)
        assert "3:05" in result.output
        assert "live" in result.output

        result = runner("track", "list", "--search", "song")
        assert "1 items" in result.output

        result = runner("track", "delete", track_id, "--yes", token=token)
        assert result.exit_code == 0
        assert runner("track", "show", track_id).exit_code == 1

    def test_playlist_flow(self, runner):
        alice = register(runner, "alice")
        bob = register(runner, "bob")

        ids = []
        for title in ("one", "two"):
            result = runner("track", "add", title, "Band", "60", "https://x/y.mp3", "--public", token=alice)
            ids.append(ID.search(result.output).group(0))

        result = runner("playlist", "create", "Road Trip", "--public", token=alice)
        playlist_id = ID.search(result.output).group(0)

        result = runner("playlist", "add", playlist_id, *ids, token=alice)
        assert "2 track(s)" in result.output

        result = runner("playlist", "reorder", playlist_id, *reversed(ids), token=alice)
        assert result.exit_code == 0, result.output

        result = runner("playlist", "follow", playlist_id, token=bob)
        assert "Following (1 follower(s))" in result.output

        result = runner("playlist", "follow", playlist_id, token=alice)
        assert result.exit_code == 1
        assert "400" in result.output

        result = runner("playlist", "duplicate", playlist_id, token=bob)
        assert "Copy of Road Trip" in result.output

        result = runner("playlist", "list", "--following", token=bob)
        assert "(1 items)" in result.output

        result = runner("playlist", "remove", playlist_id, ids[0], token=alice)
        assert "1 track(s)" in result.output

    def test_add_to_someone_elses_playlist(self, runner):
        alice = register(runner, "alice")
        bob = register(runner, "bob")
        playlist_id = ID.search(runner("playlist", "create", "Mine", "--public", token=alice).output).group(0)
        track_id = ID.search(
            runner("track", "add", "t", "a", "1", "https://x/y.mp3", token=bob).output
        ).group(0)

        result = runner("playlist", "add", playlist_id, track_id, token=bob)
        assert result.exit_code == 1
        assert "403" in result.output
