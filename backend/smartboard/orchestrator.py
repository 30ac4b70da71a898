import asyncio
from typing import Optional

from fastapi import WebSocket

from smartboard.board.remote import WebSocketBoard
from smartboard.board.synthesizer import GraphSynthesizer
from smartboard.conversation import ConversationOrchestrator
from smartboard.llm_client import LLMClient
from smartboard.messages import localized
from smartboard.narration import NarrationQueue
from smartboard.scheduler import RequestScheduler
from smartboard.session import BoardSession
from smartboard.speech.remote import BrowserSpeechProvider, WebSocketAudioPlayer
from smartboard.tts_client import TTSClient


class Orchestrator:
    """Routes incoming WebSocket messages to the appropriate subsystem."""

    def __init__(
        self,
        session: BoardSession,
        websocket: WebSocket,
        scheduler: RequestScheduler,
        llm: Optional[LLMClient] = None,
        tts: Optional[TTSClient] = None,
    ):
        self.session = session
        self.websocket = websocket

        self.board = WebSocketBoard(websocket)
        self.synthesizer = GraphSynthesizer(self.board, language=session.language)
        self.conversation = ConversationOrchestrator(
            session=session,
            llm=llm or LLMClient(),
            scheduler=scheduler,
            synthesizer=self.synthesizer,
        )

        self.player = WebSocketAudioPlayer(websocket)
        self.local_speech = BrowserSpeechProvider(websocket)
        self.narration = NarrationQueue(
            primary=tts or TTSClient(),
            player=self.player,
            fallback=self.local_speech,
        )

        # Prompt handling runs in the background so narration control messages
        # (cancel, playback-ended events) keep flowing while a request waits
        # its turn in the scheduler.
        self._prompt_tasks: set[asyncio.Task] = set()

    async def cleanup(self) -> None:
        """
        Cancel background work when the client WebSocket closes.
        Called by main.py on disconnect so nothing writes to a dead socket.
        """
        for task in list(self._prompt_tasks):
            task.cancel()
        self._prompt_tasks.clear()
        await self.narration.cancel()

    async def on_connect(self) -> None:
        await self.websocket.send_json(
            {
                "type": "connected",
                "session_id": self.session.session_id,
                "message": localized("greeting", self.session.language),
            }
        )

    async def handle_message(self, data: dict) -> None:
        msg_type = data.get("type")

        if msg_type == "session_start":
            await self._handle_session_start(data)
        elif msg_type == "prompt":
            self._spawn_prompt(data.get("text", ""), visualize=False)
        elif msg_type == "visualize_text":
            self._spawn_prompt(data.get("text", ""), visualize=True)
        elif msg_type == "settings":
            await self._handle_settings(data)
        elif msg_type == "narration_cancel":
            await self.narration.cancel()
        elif msg_type == "narration_ended":
            self.player.on_ended(str(data.get("id", "")))
        elif msg_type == "local_speech_end":
            self.local_speech.on_event(str(data.get("id", "")), data.get("error"))
        else:
            await self.websocket.send_json(
                {"type": "error", "message": f"Unknown message type: {msg_type}"}
            )

    # ── Session / settings ───────────────────────────────────────────────────

    async def _handle_session_start(self, data: dict) -> None:
        self.session.apply_settings(data)
        self.session.is_active = True
        await self._send_settings()

    async def _handle_settings(self, data: dict) -> None:
        was_muted = self.session.muted
        self.session.apply_settings(data)
        if self.session.muted and not was_muted:
            await self.narration.speak("", self.session.language, muted=True)
        await self._send_settings()

    async def _send_settings(self) -> None:
        await self.websocket.send_json(
            {
                "type": "settings_updated",
                "language": self.session.language,
                "lesson_detail": self.session.lesson_detail,
                "muted": self.session.muted,
            }
        )

    # ── Prompts ──────────────────────────────────────────────────────────────

    def _spawn_prompt(self, text: str, visualize: bool) -> None:
        text = (text or "").strip()
        if not text:
            return
        task = asyncio.create_task(self._handle_prompt(text, visualize))
        self._prompt_tasks.add(task)
        task.add_done_callback(self._prompt_tasks.discard)

    async def _handle_prompt(self, text: str, visualize: bool) -> None:
        try:
            await self.websocket.send_json({"type": "thinking", "active": True})
            try:
                if visualize:
                    reply = await self.conversation.visualize(text)
                else:
                    reply = await self.conversation.send(text)
                print(
                    f"[Orchestrator] Reply ready ({self.board.element_count} elements, "
                    f"{self.board.edge_count} edges so far)"
                )
                await self.websocket.send_json({"type": "reply", "text": reply})
            finally:
                await self._send_quietly({"type": "thinking", "active": False})

            await self.narration.speak(reply, self.session.language, muted=self.session.muted)
        except Exception as exc:
            # Usually the socket closed while the prompt was in flight
            print(f"[Orchestrator] Prompt failed: {exc!r}")

    async def _send_quietly(self, data: dict) -> None:
        try:
            await self.websocket.send_json(data)
        except Exception as exc:
            print(f"[Orchestrator] send failed: {exc!r}")
