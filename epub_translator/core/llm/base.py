"""
Request/response records for the chat-completion translation service.

This module defines the explicit data structures exchanged with the service
(TranslationRequest, ChatCompletionResponse) and the terminal result of
translating one unit (Translated or Failed).
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union
import json

from ..epub.exceptions import TranslationFailure, FailureKind

SYSTEM_PROMPT_TEMPLATE = (
    "You are a professional translator. Translate to {target_language}. "
    "Keep all HTML tags exactly as they are. Output ONLY the translated content."
)

FAILURE_MARKER = ' <span style="color: gray; font-size: 0.8em;">(⚠️ Translation failed)</span>'


@dataclass(frozen=True)
class ChatMessage:
    role: str
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class TranslationRequest:
    """One request to the translation service, built per unit.

    Attributes:
        model: Model identifier sent to the service
        target_language: Language to translate into
        content: The unit's inner markup
    """
    model: str
    target_language: str
    content: str

    @property
    def system_prompt(self) -> str:
        return SYSTEM_PROMPT_TEMPLATE.format(target_language=self.target_language)

    @property
    def messages(self) -> Tuple[ChatMessage, ...]:
        return (
            ChatMessage("system", self.system_prompt),
            ChatMessage("user", self.content),
        )

    def to_payload(self) -> Dict[str, Any]:
        """JSON body expected by the chat-completion endpoint"""
        return {
            "model": self.model,
            "messages": [message.to_dict() for message in self.messages],
        }


def _choice_content(choice: Any) -> str:
    message = choice.get("message") if isinstance(choice, dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    return content if isinstance(content, str) else ""


@dataclass(frozen=True)
class ChatCompletionResponse:
    """Parsed body of a successful chat-completion response."""
    choices: Tuple[str, ...]

    @property
    def first_content(self) -> str:
        return self.choices[0]

    @classmethod
    def parse(cls, body: Union[str, bytes]) -> 'ChatCompletionResponse':
        """
        Parse a response body into its choice contents.

        Only the first choice is validated. A null or missing content is
        read as an empty string, as is any unusable later choice.

        Args:
            body: Raw response body

        Returns:
            ChatCompletionResponse with at least one choice

        Raises:
            TranslationFailure: MALFORMED_BODY if the JSON is invalid or has
                the wrong shape, EMPTY_CHOICES if `choices` is empty
        """
        try:
            data = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise TranslationFailure(f"Invalid JSON in response: {e}", FailureKind.MALFORMED_BODY)

        if not isinstance(data, dict) or not isinstance(data.get("choices"), list):
            raise TranslationFailure("Response has no 'choices' list", FailureKind.MALFORMED_BODY)

        raw_choices: List[Any] = data["choices"]
        if not raw_choices:
            raise TranslationFailure("Response contained no choices", FailureKind.EMPTY_CHOICES)

        first = raw_choices[0]
        message = first.get("message") if isinstance(first, dict) else None
        if not isinstance(message, dict):
            raise TranslationFailure("First choice has no 'message' object", FailureKind.MALFORMED_BODY)
        content = message.get("content")
        if content is None:
            content = ""
        elif not isinstance(content, str):
            raise TranslationFailure("First choice has a non-string 'message.content'", FailureKind.MALFORMED_BODY)
        others = [_choice_content(choice) for choice in raw_choices[1:]]
        return cls(choices=(content, *others))


@dataclass(frozen=True)
class TranslationOutcome:
    """Terminal result for one unit.

    Attributes:
        text: Markup to write back into the unit's element
        attempts: Number of requests made for this unit
    """
    text: str
    attempts: int = field(default=1, compare=False)

    @property
    def succeeded(self) -> bool:
        return False


@dataclass(frozen=True)
class Translated(TranslationOutcome):
    """The service returned a usable translation (already trimmed)."""

    @property
    def succeeded(self) -> bool:
        return True


@dataclass(frozen=True)
class Failed(TranslationOutcome):
    """Retries were exhausted; the original markup is kept and marked."""
    original: str = ""
    last_error: Optional[str] = field(default=None, compare=False)

    @classmethod
    def from_original(cls, original: str, attempts: int,
                      last_error: Optional[str] = None) -> 'Failed':
        return cls(text=original + FAILURE_MARKER, attempts=attempts,
                   original=original, last_error=last_error)
