import asyncio
import os
import ssl

import aiohttp
import certifi

_SSL_CTX = ssl.create_default_context(cafile=certifi.where())

ELEVENLABS_API_URL = "https://api.elevenlabs.io/v1/text-to-speech"

# Raw 16-bit little-endian mono PCM at 24 kHz; speech/pcm.py frames it.
OUTPUT_FORMAT = "pcm_24000"

# Client sends display names ("Arabic"); the API wants ISO 639-1.
_LANGUAGE_CODES = {"arabic": "ar", "english": "en", "french": "fr", "italian": "it"}


class SpeechSynthesisError(Exception):
    pass


def language_code_for(language: str) -> str:
    key = (language or "").strip().lower()
    if key in _LANGUAGE_CODES:
        return _LANGUAGE_CODES[key]
    code = key.split("-")[0]
    return code if len(code) == 2 and code.isalpha() else ""


class TTSClient:
    def __init__(self):
        self.api_key = os.getenv("ELEVENLABS_API_KEY", "").strip()
        self.voice_id = os.getenv("ELEVENLABS_VOICE_ID", "21m00Tcm4TlvDq8ikWAM")  # Rachel
        self.voice_id_ar = os.getenv("ELEVENLABS_VOICE_ID_AR", "").strip() or self.voice_id
        self.model_id = os.getenv("ELEVENLABS_MODEL_ID", "eleven_flash_v2_5")
        self.timeout = float(os.getenv("TTS_TIMEOUT_SEC", "20"))
        self.enabled = bool(self.api_key)

    def voice_for(self, language: str) -> str:
        return self.voice_id_ar if language.lower().startswith("ar") else self.voice_id

    async def synthesize(self, text: str, language: str = "en") -> str:
        """
        Return base64-encoded PCM audio for text.

        Raises SpeechSynthesisError when the service is unreachable, answers
        with an error, or returns no audio, so the caller can fall back to
        another provider.
        """
        if not self.enabled:
            raise SpeechSynthesisError("ELEVENLABS_API_KEY is not configured")

        url = f"{ELEVENLABS_API_URL}/{self.voice_for(language)}/with-timestamps"
        headers = {
            "xi-api-key": self.api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        payload = {
            "text": text,
            "model_id": self.model_id,
            "voice_settings": {
                "stability": 0.5,
                "similarity_boost": 0.75,
                "use_speaker_boost": True,
            },
        }
        code = language_code_for(language)
        if code:
            payload["language_code"] = code

        try:
            connector = aiohttp.TCPConnector(ssl=_SSL_CTX)
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with aiohttp.ClientSession(connector=connector, timeout=timeout) as session:
                async with session.post(
                    url,
                    headers=headers,
                    params={"output_format": OUTPUT_FORMAT},
                    json=payload,
                ) as resp:
                    resp.raise_for_status()
                    data = await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise SpeechSynthesisError(f"TTS request failed: {exc}") from exc

        audio = data.get("audio_base64") if isinstance(data, dict) else None
        if not audio:
            raise SpeechSynthesisError("No audio data returned from TTS")
        return audio
