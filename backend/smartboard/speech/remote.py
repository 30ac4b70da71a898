import asyncio
import base64
import uuid
from typing import Optional

from fastapi import WebSocket

from smartboard.speech.pcm import AudioBuffer
from smartboard.tts_client import SpeechSynthesisError

# Extra time allowed past a clip's own length for the client to report back.
PLAYBACK_GRACE_SEC = 0.75

# Local speech engines run around 2.4 words/second; give them double that
# before giving up on an end event.
LOCAL_WORDS_PER_SEC = 2.4
LOCAL_MIN_WAIT_SEC = 5.0


class WebSocketAudioPlayer:
    """
    Plays WAV clips on the client. play() returns when the client reports the
    clip ended, when its duration (plus grace) runs out, or when stop() is called.
    """

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self._playing: dict[str, asyncio.Event] = {}

    async def play(self, buffer: AudioBuffer) -> None:
        clip_id = uuid.uuid4().hex
        finished = asyncio.Event()
        self._playing[clip_id] = finished
        try:
            await self.websocket.send_json(
                {
                    "type": "narration_audio",
                    "id": clip_id,
                    "data": base64.b64encode(buffer.wav).decode("utf-8"),
                    "sample_rate": buffer.sample_rate,
                    "duration": round(buffer.duration, 3),
                }
            )
            try:
                await asyncio.wait_for(
                    finished.wait(), timeout=buffer.duration + PLAYBACK_GRACE_SEC
                )
            except asyncio.TimeoutError:
                pass
        finally:
            self._playing.pop(clip_id, None)

    def on_ended(self, clip_id: str) -> None:
        finished = self._playing.get(clip_id)
        if finished is not None:
            finished.set()

    async def stop(self) -> None:
        for finished in self._playing.values():
            finished.set()
        await self.websocket.send_json({"type": "narration_stop"})


class BrowserSpeechProvider:
    """
    Fallback narration through the client's own speech engine. There is no
    audio payload: the client answers speak_local with local_speech_end.
    """

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self._pending: dict[str, asyncio.Future] = {}

    async def speak(self, text: str, language: str) -> None:
        utterance_id = uuid.uuid4().hex
        done: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[utterance_id] = done
        words = len(text.split())
        wait = max(LOCAL_MIN_WAIT_SEC, 2 * words / LOCAL_WORDS_PER_SEC)
        try:
            await self.websocket.send_json(
                {"type": "speak_local", "id": utterance_id, "text": text, "lang": language}
            )
            try:
                error = await asyncio.wait_for(done, timeout=wait)
            except asyncio.TimeoutError:
                print(f"[Narration] No end event for local speech after {wait:.1f}s")
                return
        finally:
            self._pending.pop(utterance_id, None)

        if error:
            raise SpeechSynthesisError(f"local speech failed: {error}")

    def on_event(self, utterance_id: str, error: Optional[str] = None) -> None:
        done = self._pending.get(utterance_id)
        if done is not None and not done.done():
            done.set_result(error)

    async def stop(self) -> None:
        for done in self._pending.values():
            if not done.done():
                done.set_result(None)
        await self.websocket.send_json({"type": "speech_cancel"})
