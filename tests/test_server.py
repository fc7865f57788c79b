# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Tests for WebServer message handling.

Handlers are called directly with mocked WebSockets and requests, so no
network is needed.
"""

import json
from typing import Any
from unittest.mock import AsyncMock, Mock

import pytest

from cuetrack.server import WebServer

SCRIPT = "the quick brown fox jumps over the lazy dog"


def sent_messages(ws: AsyncMock) -> list[dict[str, Any]]:
    """All JSON messages sent to a mocked WebSocket."""
    return [call.args[0] for call in ws.send_json.call_args_list]


def make_server(**kwargs: Any) -> tuple[WebServer, AsyncMock]:
    server = WebServer(script_text=SCRIPT, **kwargs)
    ws = AsyncMock()
    server.websockets.add(ws)
    return server, ws


class TestWebSocketMessages:
    """Tests for the WebSocket message dispatch."""

    @pytest.mark.asyncio
    async def test_transcript_broadcasts_position(self) -> None:
        """A matching transcript moves the cursor and tells every client."""
        server, ws = make_server()

        await server._handle_ws_message(
            ws, {"type": "transcript", "text": "the quick", "isFinal": False, "timestamp": 1.0})

        assert server.engine.cursor == 2
        message = sent_messages(ws)[-1]
        assert message["type"] == "position"
        assert message["cursor"] == 2
        assert message["totalWords"] == 9
        assert message["transcript"] == "the quick"

    @pytest.mark.asyncio
    async def test_unmatched_transcript_sends_nothing(self) -> None:
        """No broadcast when the cursor doesn't move."""
        server, ws = make_server()

        await server._handle_ws_message(ws, {"type": "transcript", "text": "banana"})

        assert server.engine.cursor == 0
        ws.send_json.assert_not_called()

    @pytest.mark.asyncio
    async def test_script_message_replaces_script(self) -> None:
        """A new script resets the cursor and reports its length."""
        server, ws = make_server()
        await server._handle_ws_message(ws, {"type": "transcript", "text": "the quick"})

        await server._handle_ws_message(ws, {"type": "script", "text": "alpha bravo charlie"})

        assert server.engine.cursor == 0
        assert server.engine.total_words == 3
        types = [m["type"] for m in sent_messages(ws)]
        assert "script_loaded" in types

    @pytest.mark.asyncio
    async def test_reset_and_jump(self) -> None:
        """Reset and jump_to move the cursor and broadcast it."""
        server, ws = make_server()

        await server._handle_ws_message(ws, {"type": "jump_to", "wordIndex": 5})
        assert server.engine.cursor == 5
        assert sent_messages(ws)[-1]["cursor"] == 5

        await server._handle_ws_message(ws, {"type": "reset"})
        assert server.engine.cursor == 0
        assert {"type": "reset"} in sent_messages(ws)

    @pytest.mark.asyncio
    async def test_jump_with_bad_index_ignored(self) -> None:
        """Non-numeric indices are ignored."""
        server, ws = make_server()

        await server._handle_ws_message(ws, {"type": "jump_to", "wordIndex": "three"})

        assert server.engine.cursor == 0

    @pytest.mark.asyncio
    async def test_settings_update(self) -> None:
        """Valid settings switch the engine's profile."""
        server, ws = make_server()

        await server._handle_ws_message(ws, {
            "type": "settings",
            "settings": {"profile": "conservative", "lookAheadWords": 12}
        })

        assert server.engine.profile.name == "conservative"
        assert server.engine.profile.look_ahead_words == 12
        assert sent_messages(ws)[-1]["type"] == "settings_updated"

    @pytest.mark.asyncio
    async def test_invalid_settings_rejected(self) -> None:
        """Invalid settings are reported to the sender and not applied."""
        server, ws = make_server()

        await server._handle_ws_message(ws, {
            "type": "settings",
            "settings": {"lookAheadWords": 0}
        })

        assert server.engine.profile.look_ahead_words == 50
        assert sent_messages(ws)[-1]["type"] == "error"

    @pytest.mark.asyncio
    async def test_deepgram_provider_messages(self) -> None:
        """Raw Deepgram messages are decoded by the configured provider."""
        server, ws = make_server(provider_name="deepgram")
        payload = {
            "type": "Results",
            "start": 0.0,
            "duration": 1.0,
            "is_final": True,
            "speech_final": False,
            "channel": {"alternatives": [{"transcript": "the quick brown"}]},
        }

        await server._handle_ws_message(ws, {"type": "provider", "payload": payload})

        assert server.engine.cursor == 3

    @pytest.mark.asyncio
    async def test_unknown_message_ignored(self) -> None:
        """Unknown message types don't raise."""
        server, ws = make_server()
        await server._handle_ws_message(ws, {"type": "bogus"})
        await server._handle_ws_message(ws, {})
        ws.send_json.assert_not_called()


class TestBroadcast:
    """Tests for sending to clients."""

    @pytest.mark.asyncio
    async def test_dead_sockets_removed(self) -> None:
        """Clients that fail to receive are dropped."""
        server, ws = make_server()
        dead = AsyncMock()
        dead.send_json.side_effect = ConnectionResetError("gone")
        server.websockets.add(dead)

        await server.broadcast({"type": "reset"})

        assert dead not in server.websockets
        assert ws in server.websockets


class TestHttpHandlers:
    """Tests for the HTTP endpoints."""

    @pytest.mark.asyncio
    async def test_get_position(self) -> None:
        """GET /position returns the current cursor."""
        server, _ws = make_server()
        server.engine.jump_to(4)

        response = await server._handle_get_position(Mock())

        data = json.loads(response.text)
        assert data["cursor"] == 4
        assert data["totalWords"] == 9

    @pytest.mark.asyncio
    async def test_script_upload(self) -> None:
        """POST /script replaces the script."""
        server, _ws = make_server()
        request = Mock()
        request.json = AsyncMock(return_value={"text": "one two three"})

        response = await server._handle_script_upload(request)

        assert response.status == 200
        assert json.loads(response.text)["totalWords"] == 3
        assert server.engine.total_words == 3

    @pytest.mark.asyncio
    async def test_script_upload_invalid_json(self) -> None:
        """Bad request bodies get a 400."""
        server, _ws = make_server()
        request = Mock()
        request.json = AsyncMock(side_effect=json.JSONDecodeError("bad", "", 0))

        response = await server._handle_script_upload(request)

        assert response.status == 400
        assert server.engine.total_words == 9


class TestMalformedMessages:
    """Messages that must not break a client's connection."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("msg_type", [["transcript"], {"a": 1}, 7, None])
    async def test_non_string_type_ignored(self, msg_type: Any) -> None:
        """Unhashable or non-string types are ignored, not raised."""
        server, ws = make_server()

        await server._handle_ws_message(ws, {"type": msg_type, "text": "the quick"})

        assert server.engine.cursor == 0
        ws.send_json.assert_not_called()
