"""Public entry points, one per feature.

Each façade validates its input, renders the flow's prompt, calls the backend
and applies any feature-specific post-processing. Failures come back as
``Failure`` values and are never swallowed here.
"""
from datetime import datetime, timedelta
from typing import Any, Mapping, Optional, Union

from loguru import logger
from pydantic import BaseModel, ValidationError

from suraksha_jal import prompts
from suraksha_jal.flow import Flow
from suraksha_jal.generation import GenerationBackend
from suraksha_jal.results import Failure, FailureKind, Result, Success, validation_failure
from suraksha_jal.schemas import (
    ChatInput,
    ChatOutput,
    DiseaseInformationInput,
    DiseaseInformationOutput,
    FaceVerificationInput,
    FaceVerificationOutput,
    GenerateReportsInput,
    GenerateReportsOutput,
    LocalAreaReportsInput,
    LocalAreaReportsOutput,
    MedicineDosageInput,
    MedicineDosageOutput,
    MedicineInformationInput,
    MedicineInformationOutput,
    PrescriptionInput,
    PrescriptionOutput,
    SpeechToTextInput,
    SpeechToTextOutput,
    SymptomCheckInput,
    SymptomCheckOutput,
    TextToSpeechInput,
    TextToSpeechOutput,
    TranslateInput,
    TranslateOutput,
    build_data_uri,
)

Payload = Union[Mapping[str, Any], BaseModel]

SYMPTOM_CHECK = Flow("symptomCheck", SymptomCheckInput, SymptomCheckOutput, prompts.SYMPTOM_CHECK)
DISEASE_INFORMATION = Flow("diseaseInformation", DiseaseInformationInput, DiseaseInformationOutput, prompts.DISEASE_INFORMATION)
MEDICINE_INFORMATION = Flow("medicineInformation", MedicineInformationInput, MedicineInformationOutput, prompts.MEDICINE_INFORMATION)
MEDICINE_DOSAGE = Flow("medicineDosage", MedicineDosageInput, MedicineDosageOutput, prompts.MEDICINE_DOSAGE)
PRESCRIPTION_READER = Flow("prescriptionReader", PrescriptionInput, PrescriptionOutput, prompts.PRESCRIPTION_READER)
FACE_VERIFICATION = Flow("faceVerification", FaceVerificationInput, FaceVerificationOutput, prompts.FACE_VERIFICATION)
SPEECH_TO_TEXT = Flow("speechToText", SpeechToTextInput, SpeechToTextOutput, prompts.SPEECH_TO_TEXT)
GENERATE_REPORTS = Flow("generateReports", GenerateReportsInput, GenerateReportsOutput, prompts.GENERATE_REPORTS)
LOCAL_AREA_REPORTS = Flow("localAreaReports", LocalAreaReportsInput, LocalAreaReportsOutput, prompts.LOCAL_AREA_REPORTS)
TRANSLATE_TEXT = Flow("translateText", TranslateInput, TranslateOutput, prompts.TRANSLATE_TEXT)
CHAT = Flow("chat", ChatInput, ChatOutput, prompts.CHAT)

ALL_FLOWS = (
    SYMPTOM_CHECK, DISEASE_INFORMATION, MEDICINE_INFORMATION, MEDICINE_DOSAGE,
    PRESCRIPTION_READER, FACE_VERIFICATION, SPEECH_TO_TEXT, GENERATE_REPORTS,
    LOCAL_AREA_REPORTS, TRANSLATE_TEXT, CHAT,
)


def check_symptoms(payload: Payload, backend: GenerationBackend) -> Result[SymptomCheckOutput]:
    return SYMPTOM_CHECK.run(payload, backend)


def get_disease_information(payload: Payload, backend: GenerationBackend) -> Result[DiseaseInformationOutput]:
    return DISEASE_INFORMATION.run(payload, backend)


def get_medicine_information(payload: Payload, backend: GenerationBackend) -> Result[MedicineInformationOutput]:
    """Name, photo, or both; at least one is required"""
    return MEDICINE_INFORMATION.run(payload, backend)


def suggest_medicine_dosage(payload: Payload, backend: GenerationBackend) -> Result[MedicineDosageOutput]:
    return MEDICINE_DOSAGE.run(payload, backend)


def read_prescription(payload: Payload, backend: GenerationBackend) -> Result[PrescriptionOutput]:
    return PRESCRIPTION_READER.run(payload, backend)


def verify_health_worker_face(payload: Payload, backend: GenerationBackend) -> Result[FaceVerificationOutput]:
    result = FACE_VERIFICATION.run(payload, backend)
    if isinstance(result, Success) and result.value.is_valid and result.value.reason:
        return Success(result.value.model_copy(update={"reason": ""}))
    return result


def transcribe_speech(payload: Payload, backend: GenerationBackend) -> Result[SpeechToTextOutput]:
    return SPEECH_TO_TEXT.run(payload, backend)


def text_to_speech(payload: Payload, backend: GenerationBackend) -> Result[TextToSpeechOutput]:
    """Read a result aloud; the audio comes back as a WAV data URI"""
    try:
        if isinstance(payload, BaseModel) and not isinstance(payload, TextToSpeechInput):
            payload = payload.model_dump(exclude_none=True)
        data = TextToSpeechInput.model_validate(payload)
    except ValidationError as e:
        failure = validation_failure(e)
        logger.info("textToSpeech rejected input: {}", failure.message)
        return failure

    result = backend.synthesize(data.text)
    if isinstance(result, Failure):
        logger.warning("textToSpeech failed ({}): {}", result.kind.value, result.message)
        return result
    if not result.value:
        return Failure(FailureKind.MALFORMED_RESULT, "Speech backend returned no audio")
    return Success(TextToSpeechOutput(audio_data_uri=build_data_uri("audio/wav", result.value)))


def generate_reports(
    payload: Payload,
    backend: GenerationBackend,
    now: Optional[datetime] = None,
) -> Result[GenerateReportsOutput]:
    """Generate ``count`` mock outbreak reports.

    Whatever the backend put in ``id`` and ``date`` is replaced: report ``i``
    gets ``id = now_millis + i`` and ``date = today - (i mod 7)`` days, so ids
    are unique and every date falls within the last week.
    """
    checked = GENERATE_REPORTS.validate(payload)
    if isinstance(checked, Failure):
        return checked
    count = checked.value.count

    result = GENERATE_REPORTS.run(checked.value, backend)
    if isinstance(result, Failure):
        return result

    generated = result.value.reports
    if len(generated) < count:
        logger.warning("generateReports asked for {} reports, backend returned {}", count, len(generated))
        return Failure(
            FailureKind.MALFORMED_RESULT,
            f"Expected {count} reports, generation returned {len(generated)}",
        )

    now = now or datetime.now()
    base_id = int(now.timestamp() * 1000)
    today = now.date()
    reports = [
        report.model_copy(update={
            "id": base_id + index,
            "date": (today - timedelta(days=index % 7)).isoformat(),
        })
        for index, report in enumerate(generated[:count])
    ]
    return Success(GenerateReportsOutput(reports=reports))


def get_local_area_reports(payload: Payload, backend: GenerationBackend) -> Result[LocalAreaReportsOutput]:
    return LOCAL_AREA_REPORTS.run(payload, backend)


def translate_text(payload: Payload, backend: GenerationBackend) -> Result[TranslateOutput]:
    return TRANSLATE_TEXT.run(payload, backend)


def chat(payload: Payload, backend: GenerationBackend) -> Result[ChatOutput]:
    return CHAT.run(payload, backend)
