import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from speechstream.config import Settings
from speechstream.errors import (
    Aborted,
    FormatError,
    SpeechStreamError,
    get_error_message,
)
from speechstream.schemas.messages import (
    ServerMessage,
    audio_chunk_response,
    error_response,
    final_audio_chunk_response,
    parse_client_message,
    stop_response,
    text_response,
)
from speechstream.services.cancellation import CancellationToken
from speechstream.services.chat_service import ChatService
from speechstream.services.conversation import ConversationState
from speechstream.services.tts_service import TTSService
from speechstream.services.turn_orchestrator import OutputChunk, TurnOrchestrator

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ConnectionSession:
    """Binds one WebSocket to its conversation and its in-flight turn.

    A new text message while a turn is active cancels that turn and starts
    the new one once the old one has unwound, so the conversation is never
    mutated by two turns at once.
    """

    connection_id: str
    websocket: WebSocket
    chat_service: ChatService
    tts_service: TTSService
    settings: Settings
    conversation: ConversationState = field(init=False)
    started_at: datetime = field(default_factory=_utcnow)
    last_activity: datetime = field(default_factory=_utcnow)
    _token: Optional[CancellationToken] = field(default=None, init=False, repr=False)
    _turn_task: Optional[asyncio.Task] = field(default=None, init=False, repr=False)
    _closed: bool = field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        self.conversation = ConversationState(
            self.settings.system_prompt,
            history_limit=self.settings.history_limit,
        )

    @property
    def state(self) -> str:
        if self._closed:
            return "CLOSED"
        return "TURN_ACTIVE" if self._token is not None else "IDLE"

    @property
    def closed(self) -> bool:
        return self._closed

    def update_activity(self) -> None:
        """Update the last activity timestamp."""
        self.last_activity = _utcnow()

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def handle_raw(self, raw: str | bytes) -> None:
        """Parse one inbound frame and dispatch it."""
        self.update_activity()
        try:
            message = parse_client_message(raw)
        except FormatError as exc:
            logger.warning(f"Malformed message on {self.connection_id}: {exc.message}")
            await self.send_error(exc.message)
            return

        if message.is_stop:
            await self.stop()
        else:
            self.start_turn(message.text or "")

    async def stop(self) -> bool:
        """Cancel the live turn, if any, and acknowledge immediately."""
        token = self._token
        if token is None:
            return False

        logger.info(f"Stop requested by client {self.connection_id}")
        token.cancel()
        self._token = None
        await self.send(stop_response())
        return True

    def start_turn(self, text: str) -> asyncio.Task:
        """Start a turn for ``text``, replacing any turn still in flight."""
        previous = self._turn_task
        if self._token is not None:
            logger.info(f"New message on {self.connection_id} replaces the active turn")
            self._token.cancel()

        token = CancellationToken()
        self._token = token
        task = asyncio.create_task(self._run_turn(text, token, previous))
        self._turn_task = task
        return task

    @property
    def turn_task(self) -> Optional[asyncio.Task]:
        return self._turn_task

    async def wait_idle(self) -> None:
        """Wait until the most recent turn task has finished."""
        task = self._turn_task
        if task is not None:
            await asyncio.wait({task})

    async def _run_turn(
        self,
        text: str,
        token: CancellationToken,
        previous: Optional[asyncio.Task],
    ) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait({previous})
        if token.cancelled or self._closed:
            return

        self.conversation.append_user(text)
        orchestrator = TurnOrchestrator(
            self.chat_service,
            self.tts_service,
            self,
            max_chunk_length=self.settings.max_sentence_length,
            flush_threshold=self.settings.segment_flush_threshold,
        )

        try:
            full_response = await orchestrator.run(self.conversation.snapshot(), token)
        except Aborted:
            logger.info(f"Turn aborted for {self.connection_id}")
            return
        except SpeechStreamError as exc:
            logger.error(f"Error processing message for {self.connection_id}: {exc.message}")
            await self.send_error(exc.message)
            return
        except Exception as exc:
            logger.error(f"Unexpected turn failure for {self.connection_id}: {exc}", exc_info=True)
            await self.send_error(get_error_message(exc))
            return
        finally:
            if self._token is token:
                self._token = None

        if self._closed:
            return
        if full_response:
            self.conversation.append_assistant(full_response)
        self.conversation.trim()

    # ------------------------------------------------------------------
    # Outbound (TurnOutput)
    # ------------------------------------------------------------------

    async def send_text(self, full_text: str, paragraph: str) -> None:
        await self.send(text_response(full_text, paragraph))

    async def send_audio(self, chunk: OutputChunk) -> None:
        await self.send(audio_chunk_response(chunk.audio, chunk.text, chunk.sequence_index))

    async def send_final(self, chunk: OutputChunk) -> None:
        await self.send(
            final_audio_chunk_response(chunk.sequence_index, chunk.total_chunks or 0)
        )

    async def send_error(self, message: str) -> None:
        await self.send(error_response(message))

    async def send(self, message: ServerMessage) -> None:
        """Send a JSON message, dropping it once the socket is gone."""
        if self._closed or self.websocket.client_state != WebSocketState.CONNECTED:
            logger.debug(f"Dropping {message.type} for closed connection {self.connection_id}")
            return
        try:
            await self.websocket.send_json(message.to_payload())
        except Exception as e:
            logger.warning(f"Error sending to {self.connection_id}: {e}")
            await self.close()

    async def close(self) -> None:
        """Release the live token; the turn unwinds on its next check."""
        if self._closed:
            return
        self._closed = True
        if self._token is not None:
            self._token.cancel()
            self._token = None


class VoiceConnectionManager:
    """Manages active WebSocket connections and their sessions."""

    def __init__(
        self,
        settings: Settings,
        chat_service: ChatService,
        tts_service: TTSService,
    ):
        self.settings = settings
        self.chat_service = chat_service
        self.tts_service = tts_service
        self.active_connections: Dict[str, ConnectionSession] = {}

    async def connect(self, websocket: WebSocket) -> ConnectionSession:
        """Accept a new WebSocket connection and create a session."""
        await websocket.accept()
        connection_id = uuid.uuid4().hex
        session = ConnectionSession(
            connection_id=connection_id,
            websocket=websocket,
            chat_service=self.chat_service,
            tts_service=self.tts_service,
            settings=self.settings,
        )
        self.active_connections[connection_id] = session
        logger.info(f"Client connected: {connection_id}")
        return session

    async def disconnect(self, connection_id: str) -> None:
        """Close and forget a client session."""
        session = self.active_connections.pop(connection_id, None)
        if session is not None:
            await session.close()
            logger.info(f"Client disconnected: {connection_id}")

    def get_session(self, connection_id: str) -> Optional[ConnectionSession]:
        """Retrieve a session by connection ID."""
        return self.active_connections.get(connection_id)

    async def close_all(self, timeout: float = 5.0) -> None:
        """Close every session, then wait for their turns to unwind."""
        sessions = list(self.active_connections.values())
        for connection_id in list(self.active_connections):
            await self.disconnect(connection_id)

        tasks = {
            session.turn_task
            for session in sessions
            if session.turn_task is not None and not session.turn_task.done()
        }
        if not tasks:
            return
        _, pending = await asyncio.wait(tasks, timeout=timeout)
        if pending:
            logger.warning(f"Cancelling {len(pending)} turn(s) still running after {timeout}s")
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)


__all__ = ["ConnectionSession", "VoiceConnectionManager"]
