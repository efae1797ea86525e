"""Generator client dispatching instruction payloads to text-generation backends."""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple, TypeVar

from anthropic import AsyncAnthropic
from google import genai
from google.genai import types as genai_types
from openai import AsyncOpenAI

from app.config import GeneratorConfig
from app.exceptions import ConfigurationException, EmptyGeneratorResponse
from app.models.exam_models import (
    MARK_BUCKETS,
    BloomsLevel,
    ExamSpecification,
    QuestionType,
)
from app.services.request_compiler import SYSTEM_PROMPT

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TextGenerationBackend(ABC):
    """A text-generation provider returning raw text for one prompt."""

    name = "base"

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        system_prompt: str = SYSTEM_PROMPT,
        spec: Optional[ExamSpecification] = None,
    ) -> str:
        """Return the raw completion text for one prompt."""


class OpenAIBackend(TextGenerationBackend):
    """OpenAI chat completions backend."""

    name = "openai"

    def __init__(self, config: GeneratorConfig, client: Optional[AsyncOpenAI] = None):
        """
        Initialize OpenAI backend.

        Args:
            config: Generator configuration
            client: AsyncOpenAI client instance (creates new one if not provided)
        """
        self.config = config
        self.client = client or AsyncOpenAI(api_key=config.api_key, base_url=config.base_url)

    async def complete(self, prompt, system_prompt=SYSTEM_PROMPT, spec=None) -> str:
        response = await self.client.chat.completions.create(
            model=self.config.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )
        if response.usage:
            logger.info(f"OpenAI generation used {response.usage.total_tokens} tokens")
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""


class GeminiBackend(TextGenerationBackend):
    """Google Gemini backend using a per-instance ``genai.Client``."""

    name = "gemini"

    def __init__(self, config: GeneratorConfig, client: Optional[genai.Client] = None):
        self.config = config
        self.client = client or genai.Client(api_key=config.api_key)

    async def complete(self, prompt, system_prompt=SYSTEM_PROMPT, spec=None) -> str:
        response = await self.client.aio.models.generate_content(
            model=self.config.model,
            contents=prompt,
            config=genai_types.GenerateContentConfig(
                system_instruction=system_prompt,
                temperature=self.config.temperature,
                max_output_tokens=self.config.max_tokens,
            ),
        )
        return response.text or ""


class AnthropicBackend(TextGenerationBackend):
    """Anthropic messages API backend."""

    name = "anthropic"

    def __init__(self, config: GeneratorConfig, client: Optional[AsyncAnthropic] = None):
        self.config = config
        self.client = client or AsyncAnthropic(api_key=config.api_key, base_url=config.base_url)

    async def complete(self, prompt, system_prompt=SYSTEM_PROMPT, spec=None) -> str:
        message = await self.client.messages.create(
            model=self.config.model,
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
            system=system_prompt,
            messages=[{"role": "user", "content": prompt}],
        )
        return "".join(
            block.text for block in message.content if getattr(block, "type", "") == "text"
        )


_MOCK_TEXTS = {
    QuestionType.CHOOSE_BEST_ANSWER: "What is the primary function of mitochondria in a cell?",
    QuestionType.FILL_BLANKS: "The process of photosynthesis occurs in the _____ of plant cells.",
    QuestionType.ONE_WORD_ANSWER: "Name the organelle that contains chlorophyll.",
    QuestionType.TRUE_FALSE: "True or False: Red blood cells have a nucleus.",
    QuestionType.CHOOSE_MULTIPLE_ANSWERS: "Which of the following are plant cell structures?",
    QuestionType.MATCHING_PAIRS: "Match the organelle with its function.",
    QuestionType.DRAWING_DIAGRAM: "Draw a neat labelled diagram of a plant cell.",
    QuestionType.MARKING_PARTS: "Mark the nucleus and cell wall on the given figure.",
    QuestionType.SHORT_ANSWER: "Explain the difference between mitosis and meiosis.",
    QuestionType.LONG_ANSWER: (
        "Analyze the impact of climate change on biodiversity and suggest "
        "three mitigation strategies."
    ),
}


def _spread(shares: Sequence[Tuple[T, float]], count: int) -> List[T]:
    """Expand (value, percentage) pairs into ``count`` values, remainder last."""
    if not shares or count <= 0:
        return []
    values: List[T] = []
    for position, (value, percentage) in enumerate(shares):
        if position == len(shares) - 1:
            quota = count - len(values)
        else:
            quota = int(percentage * count // 100)
        values.extend([value] * quota)
    return values


class MockBackend(TextGenerationBackend):
    """
    Offline backend producing deterministic placeholder questions.

    Output follows the specification's bucket counts and type shares, so a
    paper can be composed end to end without any network call.
    """

    name = "mock"

    def __init__(self, config: Optional[GeneratorConfig] = None):
        self.config = config

    async def complete(self, prompt, system_prompt=SYSTEM_PROMPT, spec=None) -> str:
        if spec is None:
            return "[]"
        return json.dumps(self.build_questions(spec), indent=2)

    @staticmethod
    def build_questions(spec: ExamSpecification) -> List[Dict[str, Any]]:
        levels = _spread(
            [(share.level, share.percentage) for share in spec.blooms_distribution],
            spec.total_questions,
        ) or [BloomsLevel.REMEMBER] * spec.total_questions

        questions: List[Dict[str, Any]] = []
        for marks in MARK_BUCKETS:
            count = spec.mark_distribution.count_for(marks)
            types = _spread(
                [(share.type, share.percentage) for share in spec.type_shares_for(marks)],
                count,
            )
            twisted = round(count * spec.twisted_questions_percentage / 100)
            for index, question_type in enumerate(types):
                number = len(questions) + 1
                question: Dict[str, Any] = {
                    "questionText": f"{_MOCK_TEXTS[question_type]} ({spec.subject_name} Q{number})",
                    "questionType": question_type.value,
                    "marks": marks,
                    "bloomsLevel": levels[len(questions)].value,
                    "difficulty": spec.difficulty_level.value,
                    "isTwisted": index < twisted,
                    "correctAnswer": "Sample correct answer",
                    "explanation": "This is a sample explanation for the answer.",
                    "tags": ["sample", "test"],
                }
                if question_type == QuestionType.CHOOSE_BEST_ANSWER:
                    question["options"] = [
                        "Energy production",
                        "Protein synthesis",
                        "DNA replication",
                        "Waste removal",
                    ]
                    question["correctAnswer"] = "Energy production"
                elif question_type == QuestionType.CHOOSE_MULTIPLE_ANSWERS:
                    question["options"] = ["Cell wall", "Chloroplast", "Centriole", "Vacuole"]
                    question["multipleCorrectAnswers"] = ["Cell wall", "Chloroplast", "Vacuole"]
                    question["correctAnswer"] = "Cell wall, Chloroplast, Vacuole"
                elif question_type == QuestionType.MATCHING_PAIRS:
                    question["matchingPairs"] = [
                        {"left": "Nucleus", "right": "Controls cell activities"},
                        {"left": "Ribosome", "right": "Protein synthesis"},
                    ]
                elif question_type == QuestionType.DRAWING_DIAGRAM:
                    question["drawingInstructions"] = "Label the nucleus, cell wall and chloroplast."
                    question["visualAids"] = ["Plant cell diagram"]
                elif question_type == QuestionType.MARKING_PARTS:
                    question["markingInstructions"] = "Mark the nucleus and the cell wall."
                    question["visualAids"] = ["Plant cell figure"]
                questions.append(question)
        return questions


_BACKENDS = {
    "openai": OpenAIBackend,
    "gemini": GeminiBackend,
    "anthropic": AnthropicBackend,
    "mock": MockBackend,
}


def create_backend(config: GeneratorConfig) -> TextGenerationBackend:
    """
    Instantiate the backend named by ``config.provider``.

    Raises:
        ConfigurationException: If the provider is unknown
    """
    backend_class = _BACKENDS.get(config.provider)
    if backend_class is None:
        raise ConfigurationException(
            f"Unsupported AI provider: {config.provider}",
            details={"supported": sorted(_BACKENDS)},
        )
    return backend_class(config)


class GeneratorClient:
    """
    Sends one instruction payload per request and returns the raw text.

    No retries and no timeouts are applied here; provider transport and
    quota errors propagate unchanged so the caller can decide what to do.
    """

    def __init__(
        self, config: GeneratorConfig, backend: Optional[TextGenerationBackend] = None
    ):
        """
        Initialize generator client.

        Args:
            config: Generator configuration
            backend: Backend instance (created from config if not provided)
        """
        self.config = config
        self.backend = backend or create_backend(config)

    async def generate(
        self,
        payload: str,
        spec: Optional[ExamSpecification] = None,
        system_prompt: str = SYSTEM_PROMPT,
    ) -> str:
        """
        Dispatch the payload to the configured backend.

        Args:
            payload: Instruction text from the request compiler
            spec: Specification (used by the offline mock backend)
            system_prompt: System instruction for chat-style providers

        Returns:
            Raw generator output

        Raises:
            EmptyGeneratorResponse: If the backend returned no text
        """
        logger.info(
            f"Requesting question paper from {self.backend.name} "
            f"(model={self.config.model}, payload={len(payload)} chars)"
        )
        text = await self.backend.complete(payload, system_prompt=system_prompt, spec=spec)
        if not text or not text.strip():
            raise EmptyGeneratorResponse(
                f"{self.backend.name} returned an empty response",
                details={"provider": self.backend.name, "model": self.config.model},
            )
        logger.info(f"Received {len(text)} characters from {self.backend.name}")
        return text
