import base64

import pytest
from conftest import PNG, ScriptedBackend

from suraksha_jal.results import Failure, FailureKind, Success
from suraksha_jal.schemas import FaceVerificationOutput
from suraksha_jal.state_machines import (
    ChatSession,
    FaceState,
    FaceVerification,
    IllegalTransition,
    MediaStream,
    MedicineLookup,
    RequestState,
    RequestStatus,
    VoiceInput,
    VoiceState,
)


# ---- face verification ----
def test_face_starts_idle_and_only_capture_leaves_it():
    face = FaceVerification()
    assert face.state == FaceState.IDLE
    for event in ("settle_valid", "settle_invalid", "reset", "grant_camera"):
        assert not face.can(event)
    face.capture(PNG)
    assert face.state == FaceState.VERIFYING


def test_only_a_settled_result_leaves_verifying():
    face = FaceVerification()
    face.capture(PNG)
    with pytest.raises(IllegalTransition):
        face.capture(PNG)
    with pytest.raises(IllegalTransition):
        face.reset()
    face.settle(Success(FaceVerificationOutput(is_valid=True)))
    assert face.state == FaceState.VALID


def test_valid_face_can_register():
    face = FaceVerification()
    face.verify(PNG, ScriptedBackend({"is_valid": True, "reason": ""}))
    assert face.can_register
    assert face.registration_photo() == PNG
    assert face.message == "Face verified successfully!"


def test_invalid_face_clears_capture_and_blocks_registration():
    face = FaceVerification()
    face.verify(PNG, ScriptedBackend({"is_valid": False, "reason": "No face detected"}))
    assert face.state == FaceState.INVALID
    assert face.captured_image is None
    assert face.message == "Verification failed: No face detected"
    with pytest.raises(IllegalTransition):
        face.registration_photo()


def test_backend_failure_settles_invalid():
    face = FaceVerification()
    face.verify(PNG, ScriptedBackend(Failure(FailureKind.UNAVAILABLE, "down")))
    assert face.state == FaceState.INVALID
    assert face.reason == "An error occurred during verification."


def test_illegal_settle_leaves_verified_face_untouched():
    face = FaceVerification()
    face.capture(PNG)
    face.settle(Success(FaceVerificationOutput(is_valid=True)))
    with pytest.raises(IllegalTransition):
        face.settle(Success(FaceVerificationOutput(is_valid=False, reason="Blurry")))
    assert face.state == FaceState.VALID
    assert face.captured_image == PNG
    assert face.reason == ""
    assert face.registration_photo() == PNG


def test_registration_rejected_outside_valid():
    face = FaceVerification()
    with pytest.raises(IllegalTransition):
        face.registration_photo()
    face.capture(PNG)
    with pytest.raises(IllegalTransition):
        face.registration_photo()


def test_retry_after_invalid_and_reset_after_valid():
    face = FaceVerification()
    face.verify(PNG, ScriptedBackend({"is_valid": False, "reason": "Blurry"}))
    face.verify(PNG, ScriptedBackend({"is_valid": True, "reason": ""}))
    assert face.state == FaceState.VALID
    face.reset()
    assert face.state == FaceState.IDLE
    assert face.captured_image is None


def test_camera_denied_until_granted():
    face = FaceVerification()
    face.deny_camera()
    assert face.state == FaceState.CAMERA_DENIED
    with pytest.raises(IllegalTransition):
        face.capture(PNG)
    face.grant_camera()
    assert face.state == FaceState.IDLE


# ---- voice input ----
class FakeStream(MediaStream):
    def __init__(self):
        self.stopped = False

    def stop(self):
        self.stopped = True


def test_voice_round_trip_appends_with_single_space(notifications):
    stream = FakeStream()
    backend = ScriptedBackend({"transcription": "  I have a fever "})
    voice = VoiceInput(backend, lambda: stream, notifications, language="English")
    voice.text = "Symptoms:"

    assert voice.start()
    assert voice.state == VoiceState.RECORDING
    voice.push(b"RIFF")
    voice.push(b"data")
    result = voice.stop()

    assert isinstance(result, Success)
    assert voice.text == "Symptoms: I have a fever"
    assert voice.state == VoiceState.IDLE
    assert stream.stopped
    audio = backend.prompts[0].media[0]
    assert audio.mime_type == "audio/wav"
    assert base64.b64decode(audio.payload) == b"RIFFdata"
    assert "The user is speaking in English." in backend.prompts[0].text


def test_voice_into_empty_text_has_no_leading_space(notifications):
    voice = VoiceInput(ScriptedBackend({"transcription": "stomach ache"}), FakeStream, notifications)
    voice.start()
    voice.push(b"x")
    voice.stop()
    assert voice.text == "stomach ache"


def test_microphone_denied_stays_idle(notifications, received):
    def deny():
        raise PermissionError("denied")

    voice = VoiceInput(ScriptedBackend(), deny, notifications)
    assert voice.start() is False
    assert voice.state == VoiceState.IDLE
    assert received[0].title == "Microphone Error"
    assert received[0].persistent
    assert received[0].variant == "destructive"


def test_transcription_failure_notifies_and_returns_to_idle(notifications, received):
    stream = FakeStream()
    voice = VoiceInput(ScriptedBackend(Failure(FailureKind.UNAVAILABLE, "down")), lambda: stream, notifications)
    voice.text = "before"
    voice.start()
    voice.push(b"x")
    result = voice.stop()
    assert isinstance(result, Failure)
    assert voice.text == "before"
    assert voice.state == VoiceState.IDLE
    assert stream.stopped
    assert received[-1].title == "Transcription Error"


def test_voice_illegal_events(notifications):
    voice = VoiceInput(ScriptedBackend(), FakeStream, notifications)
    with pytest.raises(IllegalTransition):
        voice.stop()
    with pytest.raises(IllegalTransition):
        voice.push(b"x")
    voice.start()
    with pytest.raises(IllegalTransition):
        voice.start()


# ---- medicine lookup ----
def test_typing_a_name_clears_the_image():
    lookup = MedicineLookup()
    lookup.set_image(PNG)
    lookup.type_name("Para")
    assert lookup.image is None
    assert lookup.medicine_name == "Para"


def test_capturing_an_image_clears_the_name():
    lookup = MedicineLookup()
    lookup.type_name("Paracetamol")
    lookup.set_image(PNG)
    assert lookup.medicine_name == ""
    assert lookup.request()["medicine_name"] is None
    assert lookup.request()["image"] == PNG


def test_blank_typing_keeps_the_image():
    lookup = MedicineLookup()
    lookup.set_image(PNG)
    lookup.type_name("   ")
    assert lookup.image == PNG


def test_suggestions_are_case_insensitive_substrings():
    lookup = MedicineLookup()
    lookup.type_name("PRO")
    assert lookup.suggestions() == ["Ibuprofen"]
    lookup.type_name("")
    assert lookup.suggestions() == []


def test_submit_sends_image_without_name():
    backend = ScriptedBackend({"usage_info": "Pain relief."})
    lookup = MedicineLookup()
    lookup.set_image(PNG)
    result = lookup.submit(backend, language="Hindi")
    assert result.value.usage_info == "Pain relief."
    assert "Medicine Name:" not in backend.prompts[0].text


# ---- request state ----
def test_request_state_success_and_error():
    req = RequestState()
    req.run(lambda: Success(1))
    assert req.state == RequestStatus.SUCCESS
    req.run(lambda: Failure(FailureKind.OVERLOADED, "busy"))
    assert req.state == RequestStatus.ERROR
    assert req.result.kind == FailureKind.OVERLOADED


def test_second_submit_while_loading_is_rejected():
    req = RequestState()
    nested = []

    def call():
        assert req.loading
        with pytest.raises(IllegalTransition):
            req.run(lambda: Success(2))
        nested.append(True)
        return Success(1)

    req.run(call)
    assert nested == [True]
    assert req.state == RequestStatus.SUCCESS


def test_exception_moves_to_error():
    req = RequestState()

    def boom():
        raise RuntimeError("x")

    with pytest.raises(RuntimeError):
        req.run(boom)
    assert req.state == RequestStatus.ERROR


# ---- chat session ----
def test_chat_session_keeps_turns_only_on_success():
    backend = ScriptedBackend(
        {"reply": "Boil water for one minute."},
        Failure(FailureKind.UNAVAILABLE, "down"),
    )
    session = ChatSession(backend)
    session.send("How do I purify water?")
    session.send("And for babies?")
    assert [(m.role, m.content) for m in session.messages] == [
        ("user", "How do I purify water?"),
        ("model", "Boil water for one minute."),
    ]


def test_chat_session_sends_history():
    backend = ScriptedBackend({"reply": "First."}, {"reply": "Second."})
    session = ChatSession(backend, language="Hindi")
    session.send("one")
    session.send("two")
    text = backend.prompts[1].text
    assert "user: one" in text
    assert "model: First." in text
    assert "Respond in the user's preferred language: Hindi." in text
