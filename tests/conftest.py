import base64
import json
from typing import Any, List, Type

import pytest
from pydantic import BaseModel

from suraksha_jal.generation import GenerationBackend, parse_output
from suraksha_jal.notifications import NotificationCenter
from suraksha_jal.prompts import RenderedPrompt
from suraksha_jal.results import Failure, Result, Success
from suraksha_jal.storage import InMemoryStore

PNG = "data:image/png;base64," + base64.b64encode(b"\x89PNG fake face").decode()
JPEG = "data:image/jpeg;base64," + base64.b64encode(b"\xff\xd8 fake prescription").decode()
WAV = "data:audio/wav;base64," + base64.b64encode(b"RIFF fake audio").decode()


class ScriptedBackend(GenerationBackend):
    """Returns queued answers in order and records every prompt it was given.

    A queued dict is serialized and parsed like a real backend reply, queued
    bytes answer a speech request, and a queued Failure is returned as is.
    """

    def __init__(self, *answers: Any):
        self.answers: List[Any] = list(answers)
        self.prompts: List[RenderedPrompt] = []
        self.spoken: List[str] = []

    def queue(self, *answers: Any) -> "ScriptedBackend":
        self.answers.extend(answers)
        return self

    def generate(self, prompt: RenderedPrompt, output_model: Type[BaseModel]) -> Result:
        self.prompts.append(prompt)
        if not self.answers:
            raise AssertionError(f"unexpected call for {prompt.name}")
        answer = self.answers.pop(0)
        if isinstance(answer, Failure):
            return answer
        if isinstance(answer, str):
            return parse_output(answer, output_model)
        return parse_output(json.dumps(answer), output_model)

    def synthesize(self, text: str) -> Result:
        self.spoken.append(text)
        if not self.answers:
            raise AssertionError("unexpected speech request")
        answer = self.answers.pop(0)
        if isinstance(answer, Failure):
            return answer
        return Success(answer)

    @property
    def calls(self) -> int:
        return len(self.prompts)


@pytest.fixture
def backend():
    return ScriptedBackend()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def notifications():
    return NotificationCenter()


@pytest.fixture
def received(notifications):
    seen = []
    notifications.subscribe(seen.append)
    return seen
