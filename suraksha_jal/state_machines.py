"""Client-side orchestration for the interactive screens.

Each machine keeps an enumerated state and an explicit transition table;
firing an event the table does not allow raises IllegalTransition.
"""
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from loguru import logger

from suraksha_jal.flows import chat, get_medicine_information, transcribe_speech, verify_health_worker_face
from suraksha_jal.generation import GenerationBackend
from suraksha_jal.notifications import NotificationCenter
from suraksha_jal.results import Failure, Result, Success
from suraksha_jal.schemas import ChatMessage, build_data_uri


class IllegalTransition(Exception):
    pass


class Machine:
    TRANSITIONS: Dict[Tuple[Enum, str], Enum] = {}
    INITIAL: Enum

    def __init__(self):
        self.state = self.INITIAL

    def can(self, event: str) -> bool:
        return (self.state, event) in self.TRANSITIONS

    def _fire(self, event: str) -> Enum:
        try:
            target = self.TRANSITIONS[(self.state, event)]
        except KeyError:
            raise IllegalTransition(f"{type(self).__name__}: cannot {event!r} while {self.state.value}")
        logger.debug("{}: {} --{}--> {}", type(self).__name__, self.state.value, event, target.value)
        self.state = target
        return target


# ---- Face capture for health worker registration ----
class FaceState(str, Enum):
    IDLE = "idle"
    VERIFYING = "verifying"
    VALID = "valid"
    INVALID = "invalid"
    CAMERA_DENIED = "camera_denied"


class FaceVerification(Machine):
    INITIAL = FaceState.IDLE
    TRANSITIONS = {
        (FaceState.IDLE, "capture"): FaceState.VERIFYING,
        (FaceState.INVALID, "capture"): FaceState.VERIFYING,
        (FaceState.VERIFYING, "settle_valid"): FaceState.VALID,
        (FaceState.VERIFYING, "settle_invalid"): FaceState.INVALID,
        (FaceState.VALID, "reset"): FaceState.IDLE,
        (FaceState.INVALID, "reset"): FaceState.IDLE,
        (FaceState.IDLE, "deny_camera"): FaceState.CAMERA_DENIED,
        (FaceState.INVALID, "deny_camera"): FaceState.CAMERA_DENIED,
        (FaceState.CAMERA_DENIED, "grant_camera"): FaceState.IDLE,
    }

    def __init__(self):
        super().__init__()
        self._capture: Optional[str] = None
        self.reason = ""

    @property
    def captured_image(self) -> Optional[str]:
        return self._capture

    @property
    def message(self) -> str:
        if self.state == FaceState.VERIFYING:
            return "Verifying face..."
        if self.state == FaceState.VALID:
            return "Face verified successfully!"
        if self.state == FaceState.INVALID:
            return f"Verification failed: {self.reason}"
        if self.state == FaceState.CAMERA_DENIED:
            return "Camera access was denied. Allow camera access to verify your face."
        return ""

    def capture(self, data_uri: str) -> None:
        self._fire("capture")
        self._capture = data_uri
        self.reason = ""

    def settle(self, result: Result) -> FaceState:
        if isinstance(result, Success) and result.value.is_valid:
            state = self._fire("settle_valid")
            self.reason = ""
            return state
        state = self._fire("settle_invalid")
        if isinstance(result, Success):
            self.reason = result.value.reason or "The photo could not be verified."
        else:
            self.reason = "An error occurred during verification."
        # never keep an image that failed verification
        self._capture = None
        return state

    def verify(self, data_uri: str, backend: GenerationBackend) -> FaceState:
        self.capture(data_uri)
        return self.settle(verify_health_worker_face({"face_image": data_uri}, backend))

    def reset(self) -> None:
        self._fire("reset")
        self._capture = None
        self.reason = ""

    def deny_camera(self) -> None:
        self._fire("deny_camera")
        self._capture = None

    def grant_camera(self) -> None:
        self._fire("grant_camera")

    @property
    def can_register(self) -> bool:
        return self.state == FaceState.VALID

    def registration_photo(self) -> str:
        if self.state != FaceState.VALID or not self._capture:
            raise IllegalTransition(f"registration needs a verified face (state is {self.state.value})")
        return self._capture


# ---- Voice input ----
class VoiceState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    TRANSCRIBING = "transcribing"


class MediaStream:
    """What the microphone hands back; stop() releases the device"""

    def stop(self) -> None:
        raise NotImplementedError


class VoiceInput(Machine):
    INITIAL = VoiceState.IDLE
    TRANSITIONS = {
        (VoiceState.IDLE, "start"): VoiceState.RECORDING,
        (VoiceState.RECORDING, "stop"): VoiceState.TRANSCRIBING,
        (VoiceState.TRANSCRIBING, "done"): VoiceState.IDLE,
    }

    def __init__(
        self,
        backend: GenerationBackend,
        acquire_microphone: Callable[[], MediaStream],
        notifications: Optional[NotificationCenter] = None,
        language: Optional[str] = None,
        mime_type: str = "audio/wav",
    ):
        super().__init__()
        self.backend = backend
        self.acquire_microphone = acquire_microphone
        self.notifications = notifications or NotificationCenter()
        self.language = language
        self.mime_type = mime_type
        self.text = ""
        self._stream: Optional[MediaStream] = None
        self._chunks: List[bytes] = []

    def start(self) -> bool:
        if not self.can("start"):
            raise IllegalTransition(f"VoiceInput: cannot 'start' while {self.state.value}")
        try:
            stream = self.acquire_microphone()
        except (PermissionError, OSError) as e:
            logger.warning("Microphone unavailable: {}", e)
            self.notifications.error(
                "Microphone Error",
                "Could not access the microphone. Please check your browser permissions.",
                persistent=True,
            )
            return False
        self._stream = stream
        self._chunks = []
        self._fire("start")
        return True

    def push(self, chunk: bytes) -> None:
        if self.state != VoiceState.RECORDING:
            raise IllegalTransition(f"VoiceInput: cannot buffer audio while {self.state.value}")
        self._chunks.append(chunk)

    def stop(self) -> Result:
        self._fire("stop")
        try:
            if self._stream is not None:
                self._stream.stop()
        finally:
            self._stream = None
        blob = b"".join(self._chunks)
        self._chunks = []
        try:
            payload = {"audio": build_data_uri(self.mime_type, blob)}
            if self.language:
                payload["language"] = self.language
            result = transcribe_speech(payload, self.backend)
            if isinstance(result, Success):
                spoken = result.value.transcription.strip()
                if spoken:
                    self.text = f"{self.text} {spoken}" if self.text else spoken
            else:
                self.notifications.error("Transcription Error", "Could not transcribe audio. Please try again.")
            return result
        finally:
            self._fire("done")


# ---- Medicine lookup: typed name and photo are mutually exclusive ----
COMMON_MEDICINES = [
    "Paracetamol",
    "Ibuprofen",
    "Aspirin",
    "Cetirizine",
    "Loratadine",
    "Diphenhydramine",
    "Ranitidine",
    "Omeprazole",
    "Loperamide",
    "Oral Rehydration Salts (ORS)",
]


class MedicineLookup:
    def __init__(self):
        self.medicine_name = ""
        self.image: Optional[str] = None

    def type_name(self, value: str) -> None:
        self.medicine_name = value
        if value.strip():
            self.image = None

    def set_image(self, data_uri: str) -> None:
        self.image = data_uri
        self.medicine_name = ""

    def clear_image(self) -> None:
        self.image = None

    def suggestions(self) -> List[str]:
        typed = self.medicine_name.strip().lower()
        if not typed:
            return []
        return [m for m in COMMON_MEDICINES if typed in m.lower()]

    def request(self, language: Optional[str] = None) -> dict:
        name = self.medicine_name.strip()
        return {
            "medicine_name": name or None,
            "image": self.image,
            "language": language,
        }

    def submit(self, backend: GenerationBackend, language: Optional[str] = None) -> Result:
        return get_medicine_information(self.request(language), backend)


# ---- Generic request lifecycle (idle -> loading -> success | error) ----
class RequestStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class RequestState(Machine):
    INITIAL = RequestStatus.IDLE
    TRANSITIONS = {
        (RequestStatus.IDLE, "submit"): RequestStatus.LOADING,
        (RequestStatus.SUCCESS, "submit"): RequestStatus.LOADING,
        (RequestStatus.ERROR, "submit"): RequestStatus.LOADING,
        (RequestStatus.LOADING, "succeed"): RequestStatus.SUCCESS,
        (RequestStatus.LOADING, "fail"): RequestStatus.ERROR,
    }

    def __init__(self):
        super().__init__()
        self.result: Optional[Result] = None

    @property
    def loading(self) -> bool:
        return self.state == RequestStatus.LOADING

    def run(self, call: Callable[[], Result]) -> Result:
        """Run one submission; a second one while loading is rejected"""
        self._fire("submit")
        self.result = None
        try:
            result = call()
        except Exception:
            self._fire("fail")
            raise
        self.result = result
        self._fire("fail" if isinstance(result, Failure) else "succeed")
        return result


class ChatSession:
    """In-memory conversation; a turn is kept only when the reply arrives"""

    def __init__(self, backend: GenerationBackend, language: Optional[str] = None):
        self.backend = backend
        self.language = language
        self.messages: List[ChatMessage] = []

    def send(self, text: str) -> Result:
        payload = {
            "history": [m.model_dump() for m in self.messages],
            "message": text,
            "language": self.language,
        }
        result = chat(payload, self.backend)
        if isinstance(result, Success):
            self.messages.append(ChatMessage(role="user", content=text.strip()))
            self.messages.append(ChatMessage(role="model", content=result.value.reply))
        return result
