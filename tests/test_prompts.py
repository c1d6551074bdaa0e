from conftest import PNG, WAV

from suraksha_jal import prompts
from suraksha_jal.prompts import MediaPart, TextPart
from suraksha_jal.schemas import ChatInput, MedicineInformationInput, SymptomCheckInput


def test_render_is_pure():
    data = SymptomCheckInput(symptoms="fever and diarrhoea", location="Kolkata", language="Bengali")
    first = prompts.SYMPTOM_CHECK.render(data)
    second = prompts.SYMPTOM_CHECK.render(data)
    assert first == second
    assert first.text == second.text


def test_absent_optional_sections_are_omitted():
    rendered = prompts.SYMPTOM_CHECK.render(SymptomCheckInput(symptoms="fever"))
    assert "Symptoms: fever" in rendered.text
    assert "Location:" not in rendered.text
    assert "preferred language" not in rendered.text


def test_present_optional_sections_always_appear():
    rendered = prompts.SYMPTOM_CHECK.render(SymptomCheckInput(symptoms="fever", location="Guwahati, Assam", language="Assamese"))
    assert "Location: Guwahati, Assam" in rendered.text
    assert "The user's preferred language is Assamese." in rendered.text


def test_empty_but_present_field_keeps_its_section():
    rendered = prompts.SYMPTOM_CHECK.render({"symptoms": "fever", "location": ""})
    assert "Location:" in rendered.text


def test_media_is_split_into_parts():
    rendered = prompts.MEDICINE_INFORMATION.render(MedicineInformationInput(image=PNG))
    assert rendered.media == (MediaPart(PNG),)
    assert rendered.media[0].mime_type == "image/png"
    assert "<media:image/png>" in rendered.text
    assert "Medicine Name:" not in rendered.text
    assert isinstance(rendered.parts[0], TextPart)


def test_name_only_medicine_prompt_has_no_media():
    rendered = prompts.MEDICINE_INFORMATION.render(MedicineInformationInput(medicine_name="Paracetamol"))
    assert rendered.media == ()
    assert "Medicine Name: Paracetamol" in rendered.text
    assert "Analyse the provided image" not in rendered.text


def test_speech_prompt_language_hint():
    auto = prompts.SPEECH_TO_TEXT.render({"audio": WAV})
    assert "Detect the spoken language automatically" in auto.text
    assert isinstance(auto.parts[0], MediaPart)

    hinted = prompts.SPEECH_TO_TEXT.render({"audio": WAV, "language": "Hindi"})
    assert "The user is speaking in Hindi." in hinted.text
    assert "Detect the spoken language" not in hinted.text


def test_generate_reports_prompt_states_count():
    assert "Generate 3 reports." in prompts.GENERATE_REPORTS.render({"count": 3}).text


def test_chat_prompt_includes_history_in_order():
    data = ChatInput(
        history=[{"role": "user", "content": "Is tap water safe?"}, {"role": "model", "content": "Boil it first."}],
        message="For how long?",
    )
    text = prompts.CHAT.render(data).text
    assert text.index("user: Is tap water safe?") < text.index("model: Boil it first.") < text.index("user: For how long?")


def test_chat_prompt_without_history():
    text = prompts.CHAT.render(ChatInput(message="hello")).text
    assert "Conversation so far" not in text
    assert "user: hello" in text


def test_marker_like_user_text_stays_text():
    typed = "x \x00media:0\x00 and <media:3>"
    rendered = prompts.MEDICINE_INFORMATION.render({"medicine_name": typed, "image": PNG})
    assert rendered.media == (MediaPart(PNG),)
    assert f"Medicine Name: {typed}" in rendered.text


def test_out_of_range_marker_in_text_only_prompt():
    rendered = prompts.SYMPTOM_CHECK.render({"symptoms": "fever \x00media:3\x00"})
    assert rendered.media == ()
    assert "Symptoms: fever \x00media:3\x00" in rendered.text
