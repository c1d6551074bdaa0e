from typing import Any, Generic, Mapping, Type, TypeVar, Union

from loguru import logger
from pydantic import BaseModel, ValidationError

from suraksha_jal.generation import GenerationBackend
from suraksha_jal.prompts import PromptTemplate, RenderedPrompt
from suraksha_jal.results import Failure, Result, Success, validation_failure

InputT = TypeVar("InputT", bound=BaseModel)
OutputT = TypeVar("OutputT", bound=BaseModel)


class Flow(Generic[InputT, OutputT]):
    """One structured generation flow: input contract, template, output contract"""

    def __init__(self, name: str, input_model: Type[InputT], output_model: Type[OutputT], template: PromptTemplate):
        self.name = name
        self.input_model = input_model
        self.output_model = output_model
        self.template = template

    def validate(self, payload: Union[InputT, Mapping[str, Any]]) -> Result[InputT]:
        if isinstance(payload, self.input_model):
            return Success(payload)
        if isinstance(payload, BaseModel):
            payload = payload.model_dump(exclude_none=True)
        try:
            return Success(self.input_model.model_validate(payload))
        except ValidationError as e:
            return validation_failure(e)

    def render(self, data: InputT) -> RenderedPrompt:
        return self.template.render(data)

    def run(self, payload: Union[InputT, Mapping[str, Any]], backend: GenerationBackend) -> Result[OutputT]:
        checked = self.validate(payload)
        if isinstance(checked, Failure):
            logger.info("{} rejected input: {}", self.name, checked.message)
            return checked
        prompt = self.render(checked.value)
        logger.debug("{} -> backend:\n{}", self.name, prompt.text)
        result = backend.generate(prompt, self.output_model)
        if isinstance(result, Failure):
            logger.warning("{} failed ({}): {}", self.name, result.kind.value, result.message)
        return result

    def __repr__(self):
        return f"Flow({self.name!r})"
