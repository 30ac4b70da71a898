"""
NarrationQueue tests.

The fake TTS returns the text itself as its "audio" and the queue is built
with an identity decoder, so what the player receives is exactly what was
spoken and in which order.
"""

import asyncio
import base64

from smartboard.narration import NarrationQueue, NarrationState, strip_symbols
from smartboard.speech.pcm import AudioBuffer


class FakeTTS:
    def __init__(self, enabled=True, fail=False, gate=None):
        self.enabled = enabled
        self.fail = fail
        self.gate = gate
        self.requests = []

    async def synthesize(self, text, language):
        self.requests.append((text, language))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise RuntimeError("tts unavailable")
        return text


class FakePlayer:
    """play() blocks until release() or stop() when block=True."""

    def __init__(self, block=False):
        self.block = block
        self.played = []
        self.stopped = 0
        self._release = asyncio.Event()

    async def play(self, buffer):
        self.played.append(buffer)
        if self.block:
            await self._release.wait()
            self._release.clear()

    def release(self):
        self._release.set()

    async def stop(self):
        self.stopped += 1
        self._release.set()


class FakeLocalSpeech:
    def __init__(self, fail=False):
        self.fail = fail
        self.spoken = []
        self.stopped = 0

    async def speak(self, text, language):
        self.spoken.append((text, language))
        if self.fail:
            raise RuntimeError("no voices installed")

    async def stop(self):
        self.stopped += 1


def make_queue(tts=None, player=None, fallback=None):
    return NarrationQueue(
        primary=tts if tts is not None else FakeTTS(),
        player=player if player is not None else FakePlayer(),
        fallback=fallback,
        decode=lambda audio: audio,
    )


async def until(predicate):
    for _ in range(1000):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


def test_speaks_in_submission_order():
    player = FakePlayer()

    async def run():
        queue = make_queue(player=player)
        await queue.speak("one", "en")
        await queue.speak("two", "en")
        await queue.speak("three", "en")
        await queue.drain()
        return queue

    queue = asyncio.run(run())
    assert player.played == ["one", "two", "three"]
    assert queue.state is NarrationState.IDLE


def test_new_speech_waits_for_current_playback():
    player = FakePlayer(block=True)

    async def run():
        queue = make_queue(player=player)
        await queue.speak("first", "en")
        await until(lambda: player.played == ["first"])
        await queue.speak("second", "en")
        await asyncio.sleep(0)
        assert player.played == ["first"]
        assert queue.state is NarrationState.SPEAKING
        assert queue.pending == 1
        player.release()
        await until(lambda: player.played == ["first", "second"])
        player.release()
        await queue.drain()

    asyncio.run(run())
    assert player.stopped == 0


def test_cancel_stops_playback_and_drops_pending():
    player = FakePlayer(block=True)
    local = FakeLocalSpeech()

    async def run():
        queue = make_queue(player=player, fallback=local)
        for text in ("one", "two", "three"):
            await queue.speak(text, "en")
        await until(lambda: player.played == ["one"])

        await queue.cancel()

        assert player.stopped == 1
        assert local.stopped == 1
        assert queue.pending == 0
        assert queue.state is NarrationState.IDLE
        for _ in range(20):
            await asyncio.sleep(0)
        return queue

    queue = asyncio.run(run())
    assert player.played == ["one"]
    assert local.spoken == []


def test_speech_after_cancel_is_played():
    player = FakePlayer()

    async def run():
        queue = make_queue(player=player)
        await queue.speak("old", "en")
        await queue.cancel()
        await queue.speak("new", "en")
        await queue.drain()

    asyncio.run(run())
    assert player.played == ["new"]


def test_muted_speak_never_plays_and_clears_queue():
    player = FakePlayer(block=True)

    async def run():
        queue = make_queue(player=player)
        await queue.speak("one", "en")
        await queue.speak("two", "en")
        await until(lambda: player.played == ["one"])

        await queue.speak("shh", "en", muted=True)

        assert queue.pending == 0
        for _ in range(20):
            await asyncio.sleep(0)

    asyncio.run(run())
    assert player.played == ["one"]
    assert player.stopped == 1


def test_muted_speak_on_idle_queue_produces_nothing():
    player = FakePlayer()
    tts = FakeTTS()

    async def run():
        queue = make_queue(tts=tts, player=player)
        await queue.speak("hello", "en", muted=True)
        await queue.drain()
        return queue

    queue = asyncio.run(run())
    assert tts.requests == []
    assert player.played == []
    assert queue.pending == 0


def test_primary_failure_falls_back_to_local_speech():
    local = FakeLocalSpeech()
    player = FakePlayer()

    async def run():
        queue = make_queue(tts=FakeTTS(fail=True), player=player, fallback=local)
        await queue.speak("hello", "ar")
        await queue.drain()

    asyncio.run(run())
    assert player.played == []
    assert local.spoken == [("hello", "ar")]


def test_disabled_primary_goes_straight_to_fallback():
    tts = FakeTTS(enabled=False)
    local = FakeLocalSpeech()

    async def run():
        queue = make_queue(tts=tts, fallback=local)
        await queue.speak("hello", "en")
        await queue.drain()

    asyncio.run(run())
    assert tts.requests == []
    assert local.spoken == [("hello", "en")]


def test_without_fallback_failed_task_is_skipped():
    player = FakePlayer()
    tts = FakeTTS()

    async def run():
        queue = make_queue(tts=tts, player=player)
        tts.fail = True
        await queue.speak("lost", "en")
        await queue.drain()
        tts.fail = False
        await queue.speak("heard", "en")
        await queue.drain()

    asyncio.run(run())
    assert player.played == ["heard"]


def test_both_providers_failing_does_not_block_the_queue():
    local = FakeLocalSpeech(fail=True)

    async def run():
        queue = make_queue(tts=FakeTTS(fail=True), fallback=local)
        await queue.speak("one", "en")
        await queue.speak("two", "en")
        await queue.drain()
        return queue

    queue = asyncio.run(run())
    assert [text for text, _ in local.spoken] == ["one", "two"]
    assert queue.state is NarrationState.IDLE


def test_decode_failure_falls_back():
    local = FakeLocalSpeech()
    player = FakePlayer()

    async def run():
        queue = NarrationQueue(
            primary=FakeTTS(),  # returns the text, which is not valid PCM base64
            player=player,
            fallback=local,
        )
        await queue.speak("not audio!", "en")
        await queue.drain()

    asyncio.run(run())
    assert player.played == []
    assert local.spoken == [("not audio!", "en")]


def test_real_decoder_hands_player_a_wav_buffer():
    pcm = b"\x00\x00\xff\x7f" * 240
    player = FakePlayer()

    class PcmTTS:
        enabled = True

        async def synthesize(self, text, language):
            return base64.b64encode(pcm).decode()

    async def run():
        queue = NarrationQueue(primary=PcmTTS(), player=player)
        await queue.speak("beep", "en")
        await queue.drain()

    asyncio.run(run())
    (buffer,) = player.played
    assert isinstance(buffer, AudioBuffer)
    assert buffer.frame_count == 480
    assert buffer.wav.startswith(b"RIFF")


def test_audio_arriving_after_cancel_is_discarded():
    player = FakePlayer()
    local = FakeLocalSpeech()

    async def run():
        tts = FakeTTS(gate=asyncio.Event())
        queue = make_queue(tts=tts, player=player, fallback=local)
        await queue.speak("slow", "en")
        await until(lambda: tts.requests == [("slow", "en")])
        stale_worker = queue._worker

        await queue.cancel()
        tts.gate.set()
        await stale_worker

    asyncio.run(run())
    assert player.played == []
    assert local.spoken == []


def test_symbols_are_stripped_before_speaking():
    tts = FakeTTS()

    async def run():
        queue = make_queue(tts=tts)
        await queue.speak("Great job 🎉 keep going ✨", "en")
        await queue.speak("👍😀", "en")
        await queue.drain()

    asyncio.run(run())
    assert tts.requests == [("Great job keep going", "en")]


def test_strip_symbols_keeps_arabic_text():
    assert strip_symbols("مرحبا ☀ بالعالم") == "مرحبا بالعالم"
