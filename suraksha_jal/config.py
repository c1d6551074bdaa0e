import os
import sys
from typing import List, Optional

from dotenv import load_dotenv
from loguru import logger

from suraksha_jal.generation import GenerationBackend, MockBackend, OpenAIBackend

load_dotenv(dotenv_path=".env")

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
MODEL_NAME = os.getenv("MODEL_NAME", "gpt-4o")
AUDIO_MODEL_NAME = os.getenv("AUDIO_MODEL_NAME", "gpt-4o-audio-preview")
SPEECH_MODEL_NAME = os.getenv("SPEECH_MODEL_NAME", "gpt-4o-mini-tts")
SPEECH_VOICE = os.getenv("SPEECH_VOICE", "alloy")
LLM_PROVIDER = os.getenv("LLM_PROVIDER", "openai").strip().lower()  # "openai" or "mock"
FIREBASE_API_KEY = os.getenv("FIREBASE_API_KEY", "")
STORE_PATH = os.getenv("STORE_PATH", "")  # empty keeps everything in memory
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "")
GEOCODER_URL = os.getenv("GEOCODER_URL", "https://nominatim.openstreetmap.org")
GEOCODER_USER_AGENT = os.getenv("GEOCODER_USER_AGENT", "suraksha-jal/0.1")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def allowed_origins() -> Optional[List[str]]:
    if not ALLOWED_ORIGINS:
        return None
    return [o.strip() for o in ALLOWED_ORIGINS.split(",") if o.strip()]


def configure_logging(level: str = LOG_LEVEL) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level)


def make_backend() -> GenerationBackend:
    if LLM_PROVIDER == "mock":
        logger.info("Using mock generation backend")
        return MockBackend()
    if not OPENAI_API_KEY:
        logger.warning("OPENAI_API_KEY is not set; falling back to the mock backend")
        return MockBackend()
    return OpenAIBackend(
        api_key=OPENAI_API_KEY,
        model=MODEL_NAME,
        audio_model=AUDIO_MODEL_NAME,
        speech_model=SPEECH_MODEL_NAME,
        voice=SPEECH_VOICE,
    )
