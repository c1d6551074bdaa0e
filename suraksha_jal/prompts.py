"""Prompt templates and the renderer that turns a validated flow input into
the instruction handed to the generation backend.

Templates are Jinja2 with StrictUndefined. Optional fields are dropped from the
render context when they are None, so every optional section is guarded with
``{% if field is defined %}``. Inline media is referenced with
``{{ media(field) }}``; the renderer splits the output into ordered text and
media parts so the backend can attach the binary payload next to the text.
"""
import re
from dataclasses import dataclass
from typing import Any, List, Mapping, Tuple, Union
from uuid import uuid4

from jinja2 import Environment, StrictUndefined
from pydantic import BaseModel

from suraksha_jal.schemas import parse_data_uri

_env = Environment(
    undefined=StrictUndefined,
    autoescape=False,
    trim_blocks=True,
    lstrip_blocks=True,
)

_BLANK_RUNS = re.compile(r"\n{3,}")


@dataclass(frozen=True)
class TextPart:
    text: str


@dataclass(frozen=True)
class MediaPart:
    url: str

    @property
    def mime_type(self) -> str:
        return parse_data_uri(self.url)[0]

    @property
    def payload(self) -> str:
        return parse_data_uri(self.url)[1]


PromptPart = Union[TextPart, MediaPart]


@dataclass(frozen=True)
class RenderedPrompt:
    name: str
    parts: Tuple[PromptPart, ...]

    @property
    def text(self) -> str:
        """Instruction text with media replaced by <media:mime> placeholders"""
        chunks = []
        for part in self.parts:
            if isinstance(part, TextPart):
                chunks.append(part.text)
            else:
                chunks.append(f"<media:{part.mime_type}>")
        return "".join(chunks)

    @property
    def media(self) -> Tuple[MediaPart, ...]:
        return tuple(p for p in self.parts if isinstance(p, MediaPart))


class PromptTemplate:
    def __init__(self, name: str, source: str):
        self.name = name
        self.source = source
        self._template = _env.from_string(source)

    def render(self, data: Union[BaseModel, Mapping[str, Any]]) -> RenderedPrompt:
        if isinstance(data, BaseModel):
            values = data.model_dump(exclude_none=True)
        else:
            values = {k: v for k, v in data.items() if v is not None}

        # markers are unique to this render so user text can never forge one
        token = uuid4().hex
        markers = {}

        def media(url: str) -> str:
            marker = f"<{token}:{len(markers)}>"
            markers[marker] = url
            return marker

        raw = self._template.render(media=media, **values)
        raw = _BLANK_RUNS.sub("\n\n", raw).strip()

        parts: List[PromptPart] = []
        if markers:
            pieces = re.split("(" + "|".join(re.escape(m) for m in markers) + ")", raw)
        else:
            pieces = [raw]
        for piece in pieces:
            if piece in markers:
                parts.append(MediaPart(markers[piece]))
            elif piece:
                parts.append(TextPart(piece))
        return RenderedPrompt(self.name, tuple(parts))


SYMPTOM_CHECK = PromptTemplate("symptomCheck", """
You are a medical assistant specializing in waterborne diseases. Based on the symptoms provided by the user, you will identify potential matching diseases.

Also provide a list of preventive measures, a list of additional information points, and suggest some common over-the-counter medicines that may help with the symptoms, but strongly advise consulting a doctor.

Symptoms: {{ symptoms }}
{% if location is defined %}
Location: {{ location }}
{% endif %}
{% if language is defined %}

The user's preferred language is {{ language }}. Respond in that language.
{% endif %}
""")

DISEASE_INFORMATION = PromptTemplate("diseaseInformation", """
You are a public health educator specializing in waterborne diseases. Explain the disease below in simple, accurate language: what it is, how it spreads through water, its common symptoms, how it is treated, how to prevent it, and when to see a doctor.

Disease: {{ disease_name }}
{% if symptoms is defined %}
The user reported these symptoms: {{ symptoms }}
Relate your explanation to these symptoms where relevant.
{% endif %}
{% if language is defined %}

The user's preferred language is {{ language }}. Respond in that language.
{% endif %}
""")

MEDICINE_INFORMATION = PromptTemplate("medicineInformation", """
You are a pharmacist and medical expert. A user wants to know about a specific medicine. Provide accurate and easy-to-understand information about what the medicine is used for. Be clear and concise.
{% if image is defined %}

Analyse the provided image to identify the medicine.
Image: {{ media(image) }}
{% endif %}
{% if medicine_name is defined %}

Medicine Name: {{ medicine_name }}
{% endif %}
{% if language is defined %}

The user's preferred language is {{ language }}. Respond in that language.
{% endif %}
""")

MEDICINE_DOSAGE = PromptTemplate("medicineDosage", """
You are an expert pharmacist. Based on the medicine name and user's age, provide typical dosage instructions for over-the-counter use. Be accurate and clear.

Give the dosage amount, when to take it relative to food, and the times of day it should be taken.

You MUST provide a strong disclaimer that this information is for general guidance only and is not a substitute for professional medical advice. The user MUST consult a qualified doctor or pharmacist before taking any medication, as dosage can vary based on many factors.

Medicine Name: {{ medicine_name }}
User's Age: {{ age }}
{% if language is defined %}

Respond in the user's preferred language: {{ language }}.
{% endif %}
""")

PRESCRIPTION_READER = PromptTemplate("prescriptionReader", """
You are a medical assistant with expertise in reading and transcribing doctor's prescriptions. Analyze the provided image of a prescription.

Your task is to extract all the medicines, their dosages, frequency, and any specific instructions. Present this information in a clear, structured list.

For the 'frequency' field, you MUST use simple, easy-to-understand language. Do not use medical shorthand like "1-0-1" or "TDS". Instead, write it out clearly, for example: "Once in the morning and once at night" or "Three times a day".

Critically, you MUST include a strong disclaimer stating that this is an AI-generated transcription and not a substitute for the original prescription. The user must verify the information with the original document and consult a doctor or pharmacist if they have any questions.

Image of prescription: {{ media(prescription_image) }}
{% if language is defined %}

Respond in the user's preferred language: {{ language }}.
{% endif %}
""")

FACE_VERIFICATION = PromptTemplate("faceVerification", """
You are an AI expert in verifying a person's identity from a captured photo of their face.

You will be provided with an image of a person's face. You must determine if it is a valid, clear, live photo of a real human.

- The image must contain a single, clear face.
- The face must not be obscured.
- The image must not be blurry.
- The image must appear to be a live capture, not a photo of another screen or a printed photograph.

If the face is not valid, explain why in the 'reason' field (e.g., "Image is too blurry," "No face detected," or "Image appears to be a photo of a screen."). If the face is valid, the 'reason' field should be left empty.

Image: {{ media(face_image) }}
""")

SPEECH_TO_TEXT = PromptTemplate("speechToText", """
{{ media(audio) }}
Transcribe the audio. {% if language is defined %}The user is speaking in {{ language }}.{% else %}Detect the spoken language automatically and transcribe in that language.{% endif %}
""")

GENERATE_REPORTS = PromptTemplate("generateReports", """
You are a public health data simulator. Your task is to generate a realistic list of recent waterborne disease outbreak reports in India.

Generate {{ count }} reports.

- Each report must have a unique ID.
- Focus on common waterborne diseases like Cholera, Typhoid, Hepatitis A, Giardiasis, and Dysentery.
- Use a variety of cities and states within India for the locations.
- The number of cases should be realistic, ranging from a handful to a few dozen.
- The dates should be within the last week.
- The source for all generated reports should be 'AI'.
""")

LOCAL_AREA_REPORTS = PromptTemplate("localAreaReports", """
You are a public health data analyst. Based on the user's location, generate a list of 4 realistic but mock (invented) local area reports for common waterborne diseases like Cholera, Typhoid, Hepatitis A, and Giardiasis.

For each report, provide the disease name, a number of cases, and a trend ('up', 'down', or 'stable'). The data should be plausible for the given location.

Location: {{ location }}
""")

TRANSLATE_TEXT = PromptTemplate("translateText", """
You are a professional translator. Translate the text below into {{ target_language }}. Preserve the meaning, tone and any medical terms; do not add explanations.

Text:
{{ text }}
""")

CHAT = PromptTemplate("chat", """
You are Suraksha Jal's AI health assistant. You help people understand waterborne diseases, safe drinking water, hygiene and when to seek care. You cannot diagnose or prescribe; for anything serious, advise seeing a doctor. Keep replies short, warm and practical.
{% if history %}

Conversation so far:
{% for message in history %}
{{ message.role }}: {{ message.content }}
{% endfor %}
{% endif %}

user: {{ message }}
{% if language is defined %}

Respond in the user's preferred language: {{ language }}.
{% endif %}
""")
