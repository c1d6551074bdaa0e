import base64
import binascii
import datetime as dt
import re
from typing import Annotated, List, Literal, Optional, Tuple

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, StringConstraints, model_validator

_DATA_URI_RE = re.compile(
    r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)(?P<params>(?:;[\w.+-]+=[\w.+-]+)*);base64,(?P<payload>[A-Za-z0-9+/]+={0,2})$"
)

_DATA_URI_HINT = "Expected format: 'data:<mimetype>;base64,<encoded_data>'."


def parse_data_uri(value: str) -> Tuple[str, str]:
    """Split a data URI into (mime type, base64 payload); raises ValueError"""
    match = _DATA_URI_RE.match(value or "")
    if not match:
        raise ValueError(f"must be a base64 data URI. {_DATA_URI_HINT}")
    payload = match.group("payload")
    try:
        base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise ValueError("data URI payload is not valid base64")
    return match.group("mime").lower(), payload


def build_data_uri(mime_type: str, data: bytes) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def _media_check(prefix: str):
    def check(value: str) -> str:
        mime, _ = parse_data_uri(value)
        if not mime.startswith(prefix):
            raise ValueError(f"expected a {prefix}* data URI, got {mime}")
        return value
    return check


NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
ImageDataUri = Annotated[str, AfterValidator(_media_check("image/"))]
AudioDataUri = Annotated[str, AfterValidator(_media_check("audio/"))]


def _language_field():
    return Field(None, description="The language for the response.")


ReportSource = Literal["AI", "Health Worker", "Community", "System"]
Severity = Literal["low", "medium", "high"]
Trend = Literal["up", "down", "stable"]
BloodGroup = Literal["A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-"]

ISO_DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


class FlowModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


# ---- Symptom checking ----
class SymptomCheckInput(FlowModel):
    symptoms: NonEmptyStr = Field(..., description="A description of the symptoms the user is experiencing.")
    location: Optional[str] = Field(None, description="The user's current location, if available.")
    language: Optional[str] = _language_field()


class SymptomCheckOutput(FlowModel):
    disease_matches: List[str] = Field(..., description="A list of potential waterborne diseases that match the provided symptoms.")
    preventive_measures: List[str] = Field(..., description="A list of preventive measures the user can take based on the potential diseases.")
    additional_information: List[str] = Field(..., description="A list of additional information points about the potential diseases and related health advice.")
    suggested_medicines: List[str] = Field(..., description="A list of common over-the-counter medicines that might help alleviate symptoms. This is not a prescription.")


class DiseaseInformationInput(FlowModel):
    disease_name: NonEmptyStr = Field(..., description="The name of the disease to explain.")
    symptoms: Optional[str] = Field(None, description="The symptoms the user reported, if any.")
    language: Optional[str] = _language_field()


class DiseaseInformationOutput(FlowModel):
    disease_info: str = Field(..., min_length=1, description="A detailed, easy-to-understand explanation of the disease, its causes, its spread through water, treatment and prevention, and when to see a doctor.")


# ---- Medicines ----
class MedicineInformationInput(FlowModel):
    medicine_name: Optional[str] = Field(None, description="The name of the medicine to get information about.")
    image: Optional[ImageDataUri] = Field(None, description=f"A photo of the medicine, as a data URI that must include a MIME type and use Base64 encoding. {_DATA_URI_HINT}")
    language: Optional[str] = _language_field()

    @model_validator(mode="after")
    def _name_or_image(self):
        if not (self.medicine_name or "").strip() and not self.image:
            raise ValueError("Either a medicine name or an image of the medicine is required.")
        return self


class MedicineInformationOutput(FlowModel):
    usage_info: str = Field(..., min_length=1, description="Detailed and accurate information about what the medicine is used for, including its primary uses, and how it works. Include a disclaimer that this is not a substitute for professional medical advice and users should consult a doctor or pharmacist.")


class MedicineDosageInput(FlowModel):
    medicine_name: NonEmptyStr = Field(..., description="The name of the medicine to get dosage information about.")
    age: int = Field(..., ge=1, description="The user's age.")
    language: Optional[str] = _language_field()


class MedicineDosageOutput(FlowModel):
    dosage: str = Field(..., min_length=1, description='The recommended dosage amount for the given age (e.g., "500mg", "1 tablet").')
    timing: str = Field(..., min_length=1, description='Instructions on when to take the medicine relative to meals (e.g., "After breakfast and dinner", "With food").')
    time_of_day: str = Field(..., min_length=1, description='The times of day to take the medicine (e.g., "Morning and night").')
    disclaimer: str = Field(..., min_length=1, description="A strong disclaimer that this is not medical advice and the user must consult a qualified doctor or pharmacist for accurate dosage information.")


class PrescriptionInput(FlowModel):
    prescription_image: ImageDataUri = Field(..., description=f"A photo of the doctor's prescription, as a data URI that must include a MIME type and use Base64 encoding. {_DATA_URI_HINT}")
    language: Optional[str] = _language_field()


class MedicineDetails(FlowModel):
    name: str = Field(..., description="The name of the medicine.")
    dosage: str = Field(..., description='The dosage (e.g., "500mg", "1 tablet").')
    frequency: str = Field(..., description='How often to take the medicine, described in simple words (e.g., "Twice a day", "Once at night", "One in the morning and one at night").')
    instructions: Optional[str] = Field(None, description='Any additional instructions, like "before food" or "for 5 days".')


class PrescriptionOutput(FlowModel):
    medicines: List[MedicineDetails] = Field(..., description="A structured list of all medicines found in the prescription.")
    disclaimer: str = Field(..., min_length=1, description="A strong disclaimer that this is an AI-generated transcription and is not a substitute for the original prescription. The user should always verify with the original document and consult a pharmacist or doctor.")


# ---- Health worker face check ----
class FaceVerificationInput(FlowModel):
    face_image: ImageDataUri = Field(..., description=f"A photo of the user's face, as a data URI that must include a MIME type and use Base64 encoding. {_DATA_URI_HINT}")


class FaceVerificationOutput(FlowModel):
    is_valid: bool = Field(..., description="Whether the face is a valid, real human face.")
    reason: str = Field("", description="The reason for the face being invalid, if applicable. For example, if it is blurry, not a face, or a picture of a picture.")


# ---- Speech ----
class SpeechToTextInput(FlowModel):
    audio: AudioDataUri = Field(..., description=f"The audio to transcribe, as a data URI that must include a MIME type and use Base64 encoding. {_DATA_URI_HINT}")
    language: Optional[str] = Field(None, description="The language of the audio.")


class SpeechToTextOutput(FlowModel):
    transcription: str = Field(..., description="The transcribed text.")


class TextToSpeechInput(FlowModel):
    # the speech endpoint takes at most 4096 characters per request
    text: NonEmptyStr = Field(..., max_length=4096, description="The text to read aloud.")


class TextToSpeechOutput(FlowModel):
    audio_data_uri: AudioDataUri = Field(..., description=f"The spoken text as an audio data URI. {_DATA_URI_HINT}")


# ---- Reports ----
class Report(BaseModel):
    id: int = Field(..., description="A unique ID for the report.")
    disease: str = Field(..., description="The name of the waterborne disease.")
    location: str = Field(..., description="The location of the outbreak (e.g., City, State).")
    cases: int = Field(..., ge=1, description="The number of reported cases.")
    date: str = Field(..., pattern=ISO_DATE_PATTERN, description="The date of the report in YYYY-MM-DD format.")
    source: ReportSource = Field(..., description="The source of the report.")
    severity: Optional[Severity] = None
    notes: Optional[str] = None


class GenerateReportsInput(FlowModel):
    count: int = Field(..., gt=0, description="The number of mock reports to generate.")


class GeneratedReport(FlowModel):
    id: int = Field(..., description="A unique ID for the report.")
    disease: str = Field(..., description="The name of the waterborne disease.")
    location: str = Field(..., description="The location of the outbreak (e.g., City, State).")
    cases: int = Field(..., ge=1, description="The number of reported cases.")
    date: str = Field(..., description="The date of the report in YYYY-MM-DD format.")
    source: Literal["AI", "Health Worker", "Community"] = Field(..., description="The source of the report.")


class GenerateReportsOutput(FlowModel):
    reports: List[GeneratedReport] = Field(..., description="An array of generated health reports.")


class LocalAreaReportsInput(FlowModel):
    location: NonEmptyStr = Field(..., description="The user's location (e.g., city, region) to generate reports for.")


class LocalAreaReport(FlowModel):
    disease: str = Field(..., description="The name of the waterborne disease.")
    cases: int = Field(..., ge=0, description="The number of reported cases for this disease.")
    trend: Trend = Field(..., description="The trend of cases (up, down, or stable).")


class LocalAreaReportsOutput(FlowModel):
    reports: List[LocalAreaReport] = Field(..., description="A list of local area disease reports.")


class ReportSubmission(FlowModel):
    disease: str = Field(..., min_length=2)
    location: str = Field(..., min_length=3)
    cases: int = Field(1, ge=1)
    date: dt.date
    severity: Severity = "low"
    notes: Optional[str] = None


# ---- Translation & chat ----
class TranslateInput(FlowModel):
    text: NonEmptyStr = Field(..., description="The text to translate.")
    target_language: NonEmptyStr = Field(..., description="The language to translate the text into.")


class TranslateOutput(FlowModel):
    translated_text: str = Field(..., description="The translated text.")


class ChatMessage(BaseModel):
    role: Literal["user", "model"]
    content: str


class ChatInput(FlowModel):
    history: List[ChatMessage] = Field(default_factory=list, description="The conversation so far, oldest first.")
    message: NonEmptyStr = Field(..., description="The user's new message.")
    language: Optional[str] = _language_field()


class ChatOutput(FlowModel):
    reply: str = Field(..., min_length=1, description="The assistant's reply to the user's message.")


# ---- Profiles & accounts ----
class UserProfile(BaseModel):
    name: str = ""
    email: str
    address: str = ""
    photo_url: str = ""
    is_health_worker: bool = False
    age: Optional[int] = Field(None, ge=1)
    weight: Optional[float] = Field(None, gt=0)
    height: Optional[float] = Field(None, gt=0)
    blood_group: Optional[BloodGroup] = None


class ProfilePatch(FlowModel):
    name: Optional[str] = Field(None, min_length=2)
    address: Optional[str] = Field(None, min_length=5)
    photo_url: Optional[str] = None
    age: Optional[int] = Field(None, ge=1)
    weight: Optional[float] = Field(None, gt=0)
    height: Optional[float] = Field(None, gt=0)
    blood_group: Optional[BloodGroup] = None


EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class LoginRequest(FlowModel):
    email: str = Field(..., pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=6)


class RegisterRequest(FlowModel):
    username: str = Field(..., min_length=2)
    email: str = Field(..., pattern=EMAIL_PATTERN)
    address: str = Field(..., min_length=5)
    password: str = Field(..., min_length=8)


class HealthWorkerRegisterRequest(RegisterRequest):
    face_image: ImageDataUri
