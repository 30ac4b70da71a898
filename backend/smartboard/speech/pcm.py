import base64
import binascii
import io
import wave
from dataclasses import dataclass

SAMPLE_RATE = 24000
SAMPLE_WIDTH = 2  # bytes, signed 16-bit little-endian
CHANNELS = 1


class AudioDecodeError(Exception):
    pass


@dataclass(frozen=True)
class AudioBuffer:
    """A playable clip: WAV-framed PCM plus what a player needs to time it."""

    wav: bytes
    frame_count: int
    sample_rate: int = SAMPLE_RATE

    @property
    def duration(self) -> float:
        return self.frame_count / self.sample_rate


def decode_pcm16(audio_b64: str, sample_rate: int = SAMPLE_RATE) -> AudioBuffer:
    """
    Decode base64 raw PCM16 mono into a WAV-framed AudioBuffer.

    The TTS service sends bare samples with no container, so the WAV header
    is added here before anything downstream tries to play it.
    """
    try:
        pcm = base64.b64decode(audio_b64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise AudioDecodeError(f"invalid base64 audio: {exc}") from exc

    if not pcm:
        raise AudioDecodeError("empty audio payload")
    if len(pcm) % (SAMPLE_WIDTH * CHANNELS):
        raise AudioDecodeError(f"truncated PCM16 payload ({len(pcm)} bytes)")

    out = io.BytesIO()
    with wave.open(out, "wb") as wav:
        wav.setnchannels(CHANNELS)
        wav.setsampwidth(SAMPLE_WIDTH)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm)

    return AudioBuffer(
        wav=out.getvalue(),
        frame_count=len(pcm) // (SAMPLE_WIDTH * CHANNELS),
        sample_rate=sample_rate,
    )
