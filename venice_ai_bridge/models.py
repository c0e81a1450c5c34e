"""Data models shared by the bridge components."""

import time
from dataclasses import dataclass, field, asdict
from typing import Optional, Dict, Any, List

from .errors import InvalidRequest


# ---------------------------------------------------------------------------
# Model selection
# ---------------------------------------------------------------------------

# Public short name -> value of the option in Venice's model picker
AVAILABLE_MODELS = {
    "default": "hermes-2-theta-web",
    "dogge": "dogge-llama-3-70b",
    "llama3": "llama-3.1-405b",
}

DEFAULT_MODEL = "default"


def resolve_model(name: Optional[str]) -> str:
    """Map a public model name to Venice's internal model id."""
    key = name or DEFAULT_MODEL
    if key not in AVAILABLE_MODELS:
        raise InvalidRequest(
            f"Invalid model '{key}'. Available: {', '.join(AVAILABLE_MODELS.keys())}"
        )
    return AVAILABLE_MODELS[key]


def model_matches(indicator_text: Optional[str], model_id: str) -> bool:
    """
    Check whether the model picker label shows ``model_id``.

    The picker renders ids with spaces instead of hyphens and in its own
    casing, so "llama-3.1-405b" matches a label like "Llama 3.1 405B".
    """
    if not indicator_text:
        return False
    return model_id.lower().replace("-", " ") in indicator_text.lower()


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Reference:
    """One citation under an assistant reply."""
    number: str
    text: str
    url: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass(frozen=True)
class PromptResult:
    """Reply to one prompt, already converted to Markdown."""
    response: str
    references: List[Reference] = field(default_factory=list)
    references_markdown: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "response": self.response,
            "references": [ref.to_dict() for ref in self.references],
            "references_markdown": self.references_markdown,
        }


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class Session:
    """A browser tab bound to one Venice conversation."""
    conversation_id: str
    page: Any  # playwright Page
    created_at: float = field(default_factory=time.monotonic)
    last_activity: float = 0.0
    idle_deadline: float = 0.0
    in_use: int = 0

    def __post_init__(self):
        if not self.last_activity:
            self.last_activity = self.created_at

    @property
    def is_closed(self) -> bool:
        return self.page.is_closed()

    def touch(self, idle_seconds: Optional[float] = None) -> None:
        """Record activity; push the idle deadline out when ``idle_seconds`` is given."""
        self.last_activity = time.monotonic()
        if idle_seconds is not None:
            self.idle_deadline = self.last_activity + idle_seconds
