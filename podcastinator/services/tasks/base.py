"""Base content task: the prompts one SectionPipeline run needs."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..base import VerificationResult
from ..llm_client import CompletionRequest
from ..verification import SCRIPT_POSITIVE_KEYWORDS


class BaseContentTask(ABC):
    """Abstract unit of content driven through generate -> verify -> improve.

    Subclasses supply prompts and post-processing; the state machine,
    scoring and selection live in SectionPipeline and are shared by every
    task (script section, whole-script review, outline).
    """

    name: str = "base"
    label: str = "Base Task"
    positive_keywords: tuple[str, ...] = SCRIPT_POSITIVE_KEYWORDS

    generate_temperature: float = 0.7
    verify_temperature: float = 0.3
    improve_temperature: float = 0.5
    generate_max_tokens: int = 4096
    verify_max_tokens: int = 2000
    improve_max_tokens: int = 4096

    def __init__(self, *, generate_model: str, verify_model: str, style: str = "default") -> None:
        self.generate_model = generate_model
        self.verify_model = verify_model
        self.style = style

    def initial_text(self) -> str | None:
        """Text to use as attempt 1 instead of calling the model."""
        return None

    @abstractmethod
    def build_generate_prompt(self) -> tuple[str, str]:
        """(system, user) prompts for the first draft."""
        ...

    @abstractmethod
    def build_verify_prompt(self, text: str) -> tuple[str, str]:
        ...

    @abstractmethod
    def build_improve_prompt(self, text: str, verification: VerificationResult) -> tuple[str, str]:
        ...

    def clean(self, text: str) -> str:
        """Post-process raw model output."""
        return text.strip()

    # -- request factories ---------------------------------------------------

    def generate_request(self) -> CompletionRequest:
        system, user = self.build_generate_prompt()
        return CompletionRequest.from_prompts(
            self.generate_model, system, user,
            temperature=self.generate_temperature,
            max_tokens=self.generate_max_tokens,
            caller=f"{self.name}:generate",
        )

    def verify_request(self, text: str) -> CompletionRequest:
        system, user = self.build_verify_prompt(text)
        return CompletionRequest.from_prompts(
            self.verify_model, system, user,
            temperature=self.verify_temperature,
            max_tokens=self.verify_max_tokens,
            caller=f"{self.name}:verify",
        )

    def improve_request(self, text: str, verification: VerificationResult) -> CompletionRequest:
        system, user = self.build_improve_prompt(text, verification)
        return CompletionRequest.from_prompts(
            self.generate_model, system, user,
            temperature=self.improve_temperature,
            max_tokens=self.improve_max_tokens,
            caller=f"{self.name}:improve",
        )
