# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Web server exposing the alignment engine to display clients.

Clients connect over a WebSocket, send the script and transcript events, and
receive cursor updates. The engine runs synchronously inside the event loop,
so events, resets and jumps are naturally processed one at a time.
"""

import asyncio
import contextlib
import json
import logging
from typing import Any

from aiohttp import web

from .config import DEFAULT_CONFIG, TrackingSettings, profile_from_settings
from .matching import MatchingProfile
from .providers import create_provider
from .tracker import AlignmentEngine, ScriptPosition, TranscriptEvent
from .transcription_provider import TranscriptionProvider

logger = logging.getLogger(__name__)


class WebServer:
    """
    Serves the tracking API and manages WebSocket connections.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 8000,
        script_text: str = "",
        tracking_settings: TrackingSettings | None = None,
        provider_name: str = "plain"
    ) -> None:
        self.host: str = host
        self.port: int = port
        self.app: web.Application = web.Application()
        self.websockets: set[web.WebSocketResponse] = set()
        self.runner: web.AppRunner | None = None

        # Merge initial settings with defaults
        self.settings: TrackingSettings = DEFAULT_CONFIG["tracking"].copy()
        if tracking_settings:
            self.settings.update(tracking_settings)  # type: ignore[typeddict-item]

        profile: MatchingProfile = profile_from_settings(self.settings)
        self.engine: AlignmentEngine = AlignmentEngine(
            script_text,
            profile=profile,
            pause_threshold_ms=int(self.settings["pause_threshold_ms"])
        )
        self.provider: TranscriptionProvider = create_provider(provider_name)

        self._setup_routes()

    def _setup_routes(self) -> None:
        """Set up HTTP routes."""
        self.app.router.add_get('/ws', self._handle_websocket)
        self.app.router.add_post('/script', self._handle_script_upload)
        self.app.router.add_get('/position', self._handle_get_position)

    async def _handle_websocket(self, request: web.Request) -> web.WebSocketResponse:
        """Handle WebSocket connections for real-time updates."""
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        self.websockets.add(ws)
        logger.info("WebSocket connected. Total: %d", len(self.websockets))

        try:
            # Send current state
            await ws.send_json({
                "type": "init",
                "totalWords": self.engine.total_words,
                "settings": self.settings,
                "position": self._position_message(self.engine.current_position),
            })

            async for msg in ws:
                if msg.type == web.WSMsgType.TEXT:
                    try:
                        data = json.loads(msg.data)
                    except ValueError:
                        logger.warning("Ignoring non-JSON WebSocket message")
                        continue
                    if isinstance(data, dict):
                        await self._handle_ws_message(ws, data)
                elif msg.type == web.WSMsgType.ERROR:
                    logger.warning("WebSocket error: %s", ws.exception())
        finally:
            self.websockets.discard(ws)
            logger.info("WebSocket disconnected. Total: %d", len(self.websockets))

        return ws

    async def _handle_ws_message(self, ws: web.WebSocketResponse, data: dict[str, Any]) -> None:
        """Handle incoming WebSocket messages using dispatch pattern."""
        msg_type: object | None = data.get("type")
        if not isinstance(msg_type, str) or not msg_type:
            return

        # Message type to handler dispatch
        handlers: dict[str, Any] = {
            "script": self._on_script_message,
            "transcript": self._on_transcript_message,
            "provider": self._on_provider_message,
            "settings": self._on_settings_message,
            "reset": self._on_reset_message,
            "jump_to": self._on_jump_to_message,
        }

        handler = handlers.get(msg_type)
        if handler:
            await handler(ws, data)
        else:
            logger.warning("Unhandled WebSocket message: %s", msg_type)

    async def _on_script_message(self, _ws: web.WebSocketResponse, data: dict[str, Any]) -> None:
        """Handle script update message."""
        self.load_script(str(data.get("text", "")))
        await self.broadcast({
            "type": "script_loaded",
            "totalWords": self.engine.total_words
        })
        await self.send_position(self.engine.current_position)

    async def _on_transcript_message(self, _ws: web.WebSocketResponse, data: dict[str, Any]) -> None:
        """Handle a plain transcript event."""
        text = data.get("text")
        if not isinstance(text, str):
            return
        timestamp = data.get("timestamp")
        event = TranscriptEvent(
            text=text,
            is_final=bool(data.get("isFinal", False)),
        )
        if isinstance(timestamp, (int, float)):
            event.timestamp = float(timestamp)
        await self.process_event(event)

    async def _on_provider_message(self, _ws: web.WebSocketResponse, data: dict[str, Any]) -> None:
        """Handle a raw recognizer message, decoded by the configured provider."""
        event = self.provider.handle_message(data.get("payload", {}))
        if event is not None:
            await self.process_event(event)

    async def _on_settings_message(self, ws: web.WebSocketResponse, data: dict[str, Any]) -> None:
        """Handle settings update message."""
        update = data.get("settings", {})
        if not isinstance(update, dict):
            return

        new_settings: TrackingSettings = self.settings.copy()
        if "profile" in update:
            new_settings["profile"] = str(update["profile"])
        if "lookAheadWords" in update:
            new_settings["look_ahead_words"] = update["lookAheadWords"]
        if "allowBackwardMatch" in update:
            new_settings["allow_backward_match"] = update["allowBackwardMatch"]

        try:
            profile = profile_from_settings(new_settings)
        except ValueError as e:
            await ws.send_json({"type": "error", "message": str(e)})
            return

        self.settings = new_settings
        self.engine.set_profile(profile)
        await self.broadcast({
            "type": "settings_updated",
            "settings": self.settings
        })

    async def _on_reset_message(self, _ws: web.WebSocketResponse, _data: dict[str, Any]) -> None:
        """Handle reset message."""
        self.engine.reset()
        self.provider.reset()
        await self.broadcast({"type": "reset"})
        await self.send_position(self.engine.current_position)

    async def _on_jump_to_message(self, _ws: web.WebSocketResponse, data: dict[str, Any]) -> None:
        """Handle jump to position message."""
        word_index_raw: object = data.get("wordIndex", 0)
        try:
            word_index = int(word_index_raw)  # type: ignore[call-overload]
        except (TypeError, ValueError):
            return
        self.engine.jump_to(word_index)
        self.provider.reset()
        await self.send_position(self.engine.current_position)

    def load_script(self, script_text: str) -> None:
        """Replace the script and start over."""
        self.engine.set_script(script_text)
        self.provider.reset()

    async def process_event(self, event: TranscriptEvent) -> ScriptPosition:
        """Run one transcript event through the engine and publish the result."""
        before = self.engine.cursor
        position = self.engine.handle_event(event)
        if position.cursor != before:
            await self.send_position(position, transcript=event.text)
        return position

    async def _handle_script_upload(self, request: web.Request) -> web.Response:
        """Handle script upload via HTTP POST."""
        try:
            data = await request.json()
        except ValueError:
            return web.json_response({"status": "error", "message": "invalid JSON"}, status=400)
        if not isinstance(data, dict):
            return web.json_response({"status": "error", "message": "expected an object"}, status=400)
        self.load_script(str(data.get("text", "")))
        await self.send_position(self.engine.current_position)
        return web.json_response({"status": "ok", "totalWords": self.engine.total_words})

    async def _handle_get_position(self, _request: web.Request) -> web.Response:
        """Return the current cursor."""
        return web.json_response(self._position_message(self.engine.current_position))

    async def broadcast(self, message: dict[str, object]) -> None:
        """Send a message to all connected WebSocket clients."""
        if not self.websockets:
            return

        dead: set[web.WebSocketResponse] = set()
        for ws in self.websockets:
            try:
                await ws.send_json(message)
            except (ConnectionError, ConnectionResetError, RuntimeError) as e:
                logger.warning("Error sending to WebSocket: %s", e)
                dead.add(ws)

        self.websockets -= dead

    @staticmethod
    def _position_message(position: ScriptPosition, transcript: str = "") -> dict[str, object]:
        return {
            "type": "position",
            "cursor": position.cursor,
            "totalWords": position.total_words,
            "progress": position.progress,
            "isBacktrack": position.is_backtrack,
            "paused": position.paused,
            "transcript": transcript
        }

    async def send_position(self, position: ScriptPosition, transcript: str = "") -> None:
        """Send position update to all clients."""
        if position.is_backtrack:
            logger.info("Broadcasting backtrack to %d (from %d)",
                        position.cursor, position.previous_cursor)
        await self.broadcast(self._position_message(position, transcript))

    async def start(self) -> None:
        """Start the web server."""
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site: web.TCPSite = web.TCPSite(self.runner, self.host, self.port)
        await site.start()
        print(f"Tracking server running at http://{self.host}:{self.port}")

        # Give event loop a moment to start accepting connections
        await asyncio.sleep(0.1)

    async def stop(self) -> None:
        """Stop the web server."""
        # Close all WebSocket connections
        for ws in list(self.websockets):
            with contextlib.suppress(Exception):
                await ws.close()
        self.websockets.clear()

        if self.runner:
            await self.runner.cleanup()
