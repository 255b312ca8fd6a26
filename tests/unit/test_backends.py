"""Unit tests for the provider backends, against in-process fake providers."""

import asyncio
import io
from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import Mock

import numpy as np
import pytest
from aiohttp import web, test_utils
from scipy.io import wavfile

from voicechat.config import VoiceChatConfig
from voicechat.speech import ElevenLabsSpeechBackend, create_speech_backend, strip_stage_directions
from voicechat.transcription import GroqWhisperBackend, GoogleSpeechBackend, create_transcription_backend


def groq_provider(received, status=200):
    async def handle(request):
        form = await request.post()
        received.append({
            'authorization': request.headers.get('Authorization'),
            'model': form.get('model'),
            'response_format': form.get('response_format'),
            'language': form.get('language'),
            'filename': form['file'].filename,
        })
        if status != 200:
            return web.json_response({"error": {"message": "invalid api key"}}, status=status)
        return web.json_response({
            "text": " Hello there. ",
            "language": "english",
            "duration": 1.5,
            "segments": [{"id": 0, "start": 0.0, "end": 1.4, "text": " Hello there."}],
        })

    app = web.Application()
    app.router.add_post('/openai/v1/audio/transcriptions', handle)
    return app


def elevenlabs_provider(received, audio=b'ID3mp3'):
    async def handle(request):
        received.append({
            'voice': request.match_info['voice'],
            'api_key': request.headers.get('xi-api-key'),
            'output_format': request.query.get('output_format'),
            'body': await request.json(),
        })
        return web.Response(body=audio, content_type="audio/mpeg")

    app = web.Application()
    app.router.add_post('/v1/text-to-speech/{voice}', handle)
    return app


@pytest.mark.unit
class TestStageDirections:

    @pytest.mark.parametrize("text,expected", [
        ("Hello *waves* there", "Hello  there"),
        ("*sighs* Fine.", "Fine."),
        ("No directions", "No directions"),
        ("*only*", ""),
        ("Unclosed *star", "Unclosed *star"),
    ])
    def test_strip(self, text, expected):
        """Test stage directions are removed from text."""
        assert strip_stage_directions(text) == expected


@pytest.mark.unit
class TestGroqWhisperBackend:

    def test_requires_api_key(self):
        """Test the Groq backend requires an API key."""
        with pytest.raises(ValueError):
            GroqWhisperBackend(api_key="")

    def test_transcribe(self, wav_bytes):
        """Test transcribing through the Groq API."""
        received = []

        async def scenario():
            async with test_utils.TestServer(groq_provider(received)) as server:
                backend = GroqWhisperBackend("gsk_test", base_url=str(server.make_url('/openai/v1')))
                return await backend.transcribe(wav_bytes, "audio/wav", "en")

        result = asyncio.run(scenario())

        assert result.text == "Hello there."
        assert result.language == "english"
        assert result.duration_seconds == 1.5
        assert result.segments[0].text == "Hello there."
        assert received == [{
            'authorization': "Bearer gsk_test",
            'model': "whisper-large-v3",
            'response_format': "verbose_json",
            'language': "en",
            'filename': "audio.wav",
        }]

    def test_provider_error(self, wav_bytes):
        """Test a Groq error status raises."""
        async def scenario():
            async with test_utils.TestServer(groq_provider([], status=401)) as server:
                backend = GroqWhisperBackend("bad", base_url=str(server.make_url('/openai/v1')))
                return await backend.transcribe(wav_bytes, "audio/webm")

        with pytest.raises(RuntimeError, match="401"):
            asyncio.run(scenario())


@pytest.mark.unit
class TestElevenLabsSpeechBackend:

    def test_rejects_unknown_format(self):
        """Test unknown ElevenLabs output formats are rejected."""
        with pytest.raises(ValueError):
            ElevenLabsSpeechBackend("key", output_format="ulaw_8000")

    def test_synthesize_mp3(self):
        """Test synthesizing mp3 audio."""
        received = []

        async def scenario():
            async with test_utils.TestServer(elevenlabs_provider(received)) as server:
                backend = ElevenLabsSpeechBackend("xi_key", base_url=str(server.make_url('/v1')))
                return await backend.synthesize("Hi there", language="de")

        audio = asyncio.run(scenario())

        assert audio.data == b'ID3mp3'
        assert audio.content_type == "audio/mpeg"
        assert received == [{
            'voice': "jZPrG0t6FOc6pSrEustX",
            'api_key': "xi_key",
            'output_format': "mp3_44100_128",
            'body': {"text": "Hi there", "model_id": "eleven_turbo_v2_5", "language_code": "de"},
        }]

    def test_request_voice_overrides_default(self):
        """Test a request voice overrides the default voice."""
        received = []

        async def scenario():
            async with test_utils.TestServer(elevenlabs_provider(received)) as server:
                backend = ElevenLabsSpeechBackend("xi_key", voice_id="default", base_url=str(server.make_url('/v1')))
                return await backend.synthesize("Hi", voice="custom")

        asyncio.run(scenario())

        assert received[0]['voice'] == "custom"

    def test_pcm_wrapped_as_wav(self):
        """Test raw PCM output is wrapped as WAV."""
        pcm = np.arange(100, dtype=np.int16).tobytes()

        async def scenario():
            async with test_utils.TestServer(elevenlabs_provider([], audio=pcm)) as server:
                backend = ElevenLabsSpeechBackend("xi_key", output_format="pcm_22050",
                                                  base_url=str(server.make_url('/v1')))
                return await backend.synthesize("Hi")

        audio = asyncio.run(scenario())

        assert audio.content_type == "audio/wav"
        rate, samples = wavfile.read(io.BytesIO(audio.data))
        assert rate == 22050
        assert samples.tobytes() == pcm


@pytest.mark.unit
class TestGoogleSpeechBackend:

    def test_requires_credentials(self):
        """Test the Google backend requires credentials."""
        with pytest.raises(ValueError):
            GoogleSpeechBackend(credentials_path=None)

    def test_rejects_non_wav(self):
        """Test the Google backend only accepts WAV."""
        backend = GoogleSpeechBackend(credentials_path="/tmp/key.json")

        with pytest.raises(ValueError, match="expects WAV"):
            asyncio.run(backend.transcribe(b'webm', "audio/webm"))

    def test_transcribe(self, wav_bytes):
        """Test transcribing through the Google client."""
        words = [SimpleNamespace(start_time=timedelta(seconds=0.1), end_time=timedelta(seconds=0.5)),
                 SimpleNamespace(start_time=timedelta(seconds=0.5), end_time=timedelta(seconds=0.9))]
        alternative = SimpleNamespace(transcript=" hello world ", words=words)
        backend = GoogleSpeechBackend(credentials_path="/tmp/key.json")
        backend.client = Mock()
        backend.client.recognize.return_value = SimpleNamespace(results=[SimpleNamespace(alternatives=[alternative])])

        result = asyncio.run(backend.transcribe(wav_bytes, "audio/wav", "en-GB"))

        assert result.text == "hello world"
        assert result.language == "en-GB"
        assert result.duration_seconds == pytest.approx(0.25)
        assert (result.segments[0].start, result.segments[0].end) == (0.1, 0.9)
        config = backend.client.recognize.call_args.kwargs['config']
        assert config.sample_rate_hertz == 16000
        assert config.language_code == "en-GB"


@pytest.mark.unit
class TestBackendFactories:

    def test_groq_from_config(self, config_file):
        """Test creating the Groq backend from config."""
        config = VoiceChatConfig(config_file({"transcription": {"backend": "groq", "groq": {"api_key": "gsk"}}}))

        backend = create_transcription_backend(config)

        assert isinstance(backend, GroqWhisperBackend)
        assert backend.api_key == "gsk"

    def test_unknown_backend(self, config_file):
        """Test an unknown transcription backend name."""
        config = VoiceChatConfig(config_file({"transcription": {"backend": "carrier-pigeon"}}))

        with pytest.raises(ValueError):
            create_transcription_backend(config)

    def test_speech_backend_missing_key(self, config_file, monkeypatch):
        """Test no speech backend is created without a key."""
        monkeypatch.delenv("ELEVENLABS_API_KEY", raising=False)
        config = VoiceChatConfig(config_file())

        assert create_speech_backend(config) is None

    def test_speech_backend_key_from_environment(self, config_file, monkeypatch):
        """Test the speech backend key is read from the environment."""
        monkeypatch.setenv("ELEVENLABS_API_KEY", "env-key")
        config = VoiceChatConfig(config_file({"speech": {"elevenlabs": {"voice_id": "abc"}}}))

        backend = create_speech_backend(config)

        assert backend.api_key == "env-key"
        assert backend.voice_id == "abc"
