import asyncio
import itertools
import re
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from smartboard.speech.pcm import AudioBuffer, decode_pcm16

# Emoji and decorative glyphs the speech engines either skip or read out loud
# ("smiling face with smiling eyes").
_SYMBOLS_RE = re.compile(
    "["
    "\U0001F600-\U0001F64F"
    "\U0001F300-\U0001F5FF"
    "\U0001F680-\U0001F6FF"
    "\U0001F1E0-\U0001F1FF"
    "\u2600-\u26FF"
    "\u2700-\u27BF"
    "\U0001F900-\U0001F9FF"
    "\U0001F018-\U0001F270"
    "\u238C\u2B06\u2197"
    "]"
)


def strip_symbols(text: str) -> str:
    return re.sub(r"\s{2,}", " ", _SYMBOLS_RE.sub("", text)).strip()


class SpeechSynthesizer(Protocol):
    enabled: bool

    async def synthesize(self, text: str, language: str) -> str: ...


class AudioPlayer(Protocol):
    async def play(self, buffer: AudioBuffer) -> None: ...

    async def stop(self) -> None: ...


class LocalSpeechProvider(Protocol):
    async def speak(self, text: str, language: str) -> None: ...

    async def stop(self) -> None: ...


class NarrationState(str, Enum):
    IDLE = "idle"
    SPEAKING = "speaking"


@dataclass(frozen=True)
class NarrationTask:
    text: str
    language: str
    seq: int


class NarrationQueue:
    """
    FIFO of things to say, spoken one at a time.

    Each task tries the network TTS first (fetch, decode, play to the end) and
    falls back to the client's local speech engine if any step fails. Nothing
    here raises to the caller: if both providers fail the task is skipped.

    cancel() (or speak(..., muted=True)) stops whatever is playing and drops
    everything queued. Each cancel starts a new epoch; a consumer from an old
    epoch that is still waiting on a TTS fetch discards the audio when it
    arrives instead of playing it.
    """

    def __init__(
        self,
        primary: Optional[SpeechSynthesizer] = None,
        player: Optional[AudioPlayer] = None,
        fallback: Optional[LocalSpeechProvider] = None,
        decode: Callable[[str], AudioBuffer] = decode_pcm16,
    ):
        self.primary = primary
        self.player = player
        self.fallback = fallback
        self.decode = decode

        self._pending: deque[NarrationTask] = deque()
        self._current: Optional[NarrationTask] = None
        self._epoch = 0
        self._worker: Optional[asyncio.Task] = None
        self._seq = itertools.count(1)

    @property
    def state(self) -> NarrationState:
        return NarrationState.SPEAKING if self._current is not None else NarrationState.IDLE

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def speak(self, text: str, language: str, muted: bool = False) -> None:
        if muted:
            await self.cancel()
            return

        clean = strip_symbols(text or "")
        if not clean:
            return

        self._pending.append(NarrationTask(text=clean, language=language, seq=next(self._seq)))
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._consume(self._epoch))

    async def cancel(self) -> None:
        self._epoch += 1
        self._pending.clear()
        self._current = None
        self._worker = None

        for target in (self.player, self.fallback):
            if target is None:
                continue
            try:
                await target.stop()
            except Exception as exc:
                print(f"[Narration] stop failed: {exc}")

    async def drain(self) -> None:
        """Wait until the current consumer has spoken everything queued."""
        while self._worker is not None and not self._worker.done():
            await self._worker

    # ── Consumer ─────────────────────────────────────────────────────────────

    async def _consume(self, epoch: int) -> None:
        try:
            while epoch == self._epoch and self._pending:
                task = self._pending.popleft()
                self._current = task
                await self._narrate(task, epoch)
        finally:
            if epoch == self._epoch:
                self._current = None

    def _is_current(self, task: NarrationTask, epoch: int) -> bool:
        return epoch == self._epoch and self._current is task

    async def _narrate(self, task: NarrationTask, epoch: int) -> None:
        if self._primary_available():
            try:
                audio_b64 = await self.primary.synthesize(task.text, task.language)
                if not self._is_current(task, epoch):
                    print(f"[Narration] Discarding audio for cancelled task #{task.seq}")
                    return
                buffer = self.decode(audio_b64)
                await self.player.play(buffer)
                return
            except Exception as exc:
                print(f"[Narration] Primary TTS failed for task #{task.seq}: {exc}")

        if not self._is_current(task, epoch):
            return
        if self.fallback is None:
            print(f"[Narration] No fallback provider, skipping task #{task.seq}")
            return

        try:
            await self.fallback.speak(task.text, task.language)
        except Exception as exc:
            print(f"[Narration] Fallback speech failed for task #{task.seq}: {exc}")

    def _primary_available(self) -> bool:
        if self.primary is None or self.player is None:
            return False
        return bool(getattr(self.primary, "enabled", True))
