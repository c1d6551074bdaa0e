import io
import json
import re
import wave
from typing import Any, Dict, List, Optional, Type, TypeVar

import openai
from loguru import logger
from openai import OpenAI
from pydantic import BaseModel, ValidationError

from suraksha_jal.prompts import MediaPart, RenderedPrompt
from suraksha_jal.results import Failure, FailureKind, Result, Success, field_errors

M = TypeVar("M", bound=BaseModel)

SYSTEM_PROMPT = (
    "You are the generation engine behind Suraksha Jal, a public health assistant "
    "focused on waterborne diseases in India. Follow the user's instruction exactly "
    "and answer with a single JSON object that conforms to the provided schema."
)

# chat completions only accept these two audio containers
_AUDIO_FORMATS = {
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/wave": "wav",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
}

_OVERLOAD_STATUSES = {429, 503, 529}


class GenerationBackend:
    """Turns a rendered prompt into an instance of the flow's output model.

    Implementations never raise for backend problems; they return a Failure so
    callers have to deal with it explicitly.
    """

    def generate(self, prompt: RenderedPrompt, output_model: Type[M]) -> Result[M]:
        raise NotImplementedError

    def synthesize(self, text: str) -> Result[bytes]:
        """Read ``text`` aloud; the value is a WAV file"""
        raise NotImplementedError


def parse_output(raw: Optional[str], output_model: Type[M]) -> Result[M]:
    if not raw or not raw.strip():
        return Failure(FailureKind.MALFORMED_RESULT, "Generation backend returned an empty result")
    try:
        return Success(output_model.model_validate_json(raw))
    except ValidationError as e:
        logger.warning("Malformed {} from backend: {}", output_model.__name__, e)
        return Failure(
            FailureKind.MALFORMED_RESULT,
            f"Generation result does not match {output_model.__name__}",
            field_errors(e),
        )


def response_format_for(output_model: Type[BaseModel]) -> Dict[str, Any]:
    return {
        "type": "json_schema",
        "json_schema": {
            "name": output_model.__name__,
            "schema": output_model.model_json_schema(),
        },
    }


class UnsupportedMedia(ValueError):
    pass


# ---- OpenAI backend ----
def _api_failure(e: Exception, name: str) -> Failure:
    if isinstance(e, openai.RateLimitError):
        logger.warning("OpenAI rate limited {}: {}", name, e)
        return Failure(FailureKind.OVERLOADED, "Generation backend is overloaded")
    if isinstance(e, openai.APIStatusError):
        logger.warning("OpenAI returned {} for {}: {}", e.status_code, name, e)
        if e.status_code in _OVERLOAD_STATUSES:
            return Failure(FailureKind.OVERLOADED, "Generation backend is overloaded")
        return Failure(FailureKind.UNAVAILABLE, f"Generation backend error ({e.status_code})")
    if isinstance(e, openai.APIConnectionError):
        logger.warning("OpenAI unreachable for {}: {}", name, e)
        return Failure(FailureKind.UNAVAILABLE, "Generation backend is unreachable")
    logger.exception("OpenAI error")
    return Failure(FailureKind.UNAVAILABLE, str(e))


class OpenAIBackend(GenerationBackend):
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o",
        audio_model: str = "gpt-4o-audio-preview",
        speech_model: str = "gpt-4o-mini-tts",
        voice: str = "alloy",
        temperature: float = 0.2,
        client: Any = None,
    ):
        self.client = client or OpenAI(api_key=api_key)
        self.model = model
        self.audio_model = audio_model
        self.speech_model = speech_model
        self.voice = voice
        self.temperature = temperature

    @staticmethod
    def _media_content(part: MediaPart) -> Dict[str, Any]:
        mime = part.mime_type
        if mime.startswith("image/"):
            return {"type": "image_url", "image_url": {"url": part.url}}
        if mime.startswith("audio/"):
            fmt = _AUDIO_FORMATS.get(mime)
            if not fmt:
                raise UnsupportedMedia(f"Audio format {mime} is not accepted by the OpenAI API")
            return {"type": "input_audio", "input_audio": {"data": part.payload, "format": fmt}}
        raise UnsupportedMedia(f"Media type {mime} is not supported")

    def _user_content(self, prompt: RenderedPrompt) -> List[Dict[str, Any]]:
        content = []
        for part in prompt.parts:
            if isinstance(part, MediaPart):
                content.append(self._media_content(part))
            else:
                content.append({"type": "text", "text": part.text})
        return content

    def generate(self, prompt: RenderedPrompt, output_model: Type[M]) -> Result[M]:
        try:
            content = self._user_content(prompt)
        except UnsupportedMedia as e:
            logger.warning("Cannot send {} to OpenAI: {}", prompt.name, e)
            return Failure(FailureKind.UNAVAILABLE, str(e))

        has_audio = any(p.mime_type.startswith("audio/") for p in prompt.media)
        messages = [{"role": "system", "content": SYSTEM_PROMPT}]
        kwargs: Dict[str, Any] = {}
        if has_audio:
            # audio models do not take a json_schema response format; spell the schema out
            schema = json.dumps(output_model.model_json_schema(), ensure_ascii=False)
            messages.append({"role": "system", "content": f"Return ONLY valid JSON matching this schema. No markdown.\n{schema}"})
        else:
            kwargs["response_format"] = response_format_for(output_model)
        messages.append({"role": "user", "content": content})

        try:
            completion = self.client.chat.completions.create(
                model=self.audio_model if has_audio else self.model,
                messages=messages,
                temperature=self.temperature,
                **kwargs,
            )
        except openai.OpenAIError as e:
            return _api_failure(e, prompt.name)

        raw = completion.choices[0].message.content if completion.choices else None
        if has_audio and raw:
            raw = _strip_fences(raw)
        return parse_output(raw, output_model)

    def synthesize(self, text: str) -> Result[bytes]:
        try:
            speech = self.client.audio.speech.create(
                model=self.speech_model,
                voice=self.voice,
                input=text,
                response_format="wav",
            )
        except openai.OpenAIError as e:
            return _api_failure(e, "textToSpeech")
        return Success(speech.content)


_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")


def _strip_fences(text: str) -> str:
    return _FENCE_RE.sub("", text.strip())


# ---- Mock backend (LLM_PROVIDER=mock) ----
_DISCLAIMER = "Demo only. This is not medical advice. Always consult a qualified doctor or pharmacist."

MOCK_PAYLOADS: Dict[str, Dict[str, Any]] = {
    "SymptomCheckOutput": {
        "disease_matches": ["Cholera", "Typhoid"],
        "preventive_measures": ["Drink boiled or filtered water", "Wash hands with soap before eating"],
        "additional_information": ["This is a mock response. Connect a generation backend for real answers."],
        "suggested_medicines": ["Oral Rehydration Salts (ORS)"],
    },
    "DiseaseInformationOutput": {
        "disease_info": "Mock information: this disease spreads through contaminated water. " + _DISCLAIMER,
    },
    "MedicineInformationOutput": {
        "usage_info": "Mock information about the medicine's common uses. " + _DISCLAIMER,
    },
    "MedicineDosageOutput": {
        "dosage": "1 tablet",
        "timing": "After food",
        "time_of_day": "Morning and night",
        "disclaimer": _DISCLAIMER,
    },
    "PrescriptionOutput": {
        "medicines": [
            {"name": "Paracetamol", "dosage": "500mg", "frequency": "Three times a day", "instructions": "After food for 3 days"},
        ],
        "disclaimer": "This is an AI-generated transcription. Verify it against the original prescription. " + _DISCLAIMER,
    },
    "FaceVerificationOutput": {"is_valid": True, "reason": ""},
    "SpeechToTextOutput": {"transcription": "mock transcription"},
    "LocalAreaReportsOutput": {
        "reports": [
            {"disease": "Cholera", "cases": 12, "trend": "up"},
            {"disease": "Typhoid", "cases": 7, "trend": "stable"},
            {"disease": "Hepatitis A", "cases": 3, "trend": "down"},
            {"disease": "Giardiasis", "cases": 5, "trend": "stable"},
        ],
    },
    "TranslateOutput": {"translated_text": "mock translation"},
    "ChatOutput": {"reply": "This is a mock reply. Drink safe, boiled water and see a doctor if symptoms persist."},
}

_MOCK_LOCATIONS = ["Mumbai, Maharashtra", "Delhi, NCT", "Kolkata, West Bengal", "Chennai, Tamil Nadu", "Guwahati, Assam"]
_MOCK_DISEASES = ["Cholera", "Typhoid", "Hepatitis A", "Giardiasis", "Dysentery"]
_COUNT_RE = re.compile(r"Generate (\d+) reports")


def _mock_reports(prompt: RenderedPrompt) -> Dict[str, Any]:
    match = _COUNT_RE.search(prompt.text)
    count = int(match.group(1)) if match else 5
    return {
        "reports": [
            {
                "id": i + 1,
                "disease": _MOCK_DISEASES[i % len(_MOCK_DISEASES)],
                "location": _MOCK_LOCATIONS[i % len(_MOCK_LOCATIONS)],
                "cases": 3 + (i * 7) % 30,
                "date": "2024-01-01",
                "source": "AI",
            }
            for i in range(count)
        ]
    }


class MockBackend(GenerationBackend):
    """Canned, schema-conforming answers for running without an API key"""

    def generate(self, prompt: RenderedPrompt, output_model: Type[M]) -> Result[M]:
        name = output_model.__name__
        if name == "GenerateReportsOutput":
            payload = _mock_reports(prompt)
        elif name in MOCK_PAYLOADS:
            payload = MOCK_PAYLOADS[name]
        else:
            return Failure(FailureKind.UNAVAILABLE, f"No mock payload for {name}")
        return parse_output(json.dumps(payload, ensure_ascii=False), output_model)

    def synthesize(self, text: str) -> Result[bytes]:
        # a quarter second of 8 kHz mono silence
        buf = io.BytesIO()
        with wave.open(buf, "wb") as out:
            out.setnchannels(1)
            out.setsampwidth(2)
            out.setframerate(8000)
            out.writeframes(b"\x00\x00" * 2000)
        return Success(buf.getvalue())
