"""Template match domain entities."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class TemplateMatch:
    """A template scored against an intent.

    Attributes:
        template: The template name
        confidence: Raw cosine similarity between intent and description
        description: The template's description
    """

    template: str
    confidence: float
    description: str


@dataclass(frozen=True)
class MatchResult:
    """Outcome of selecting a template for an intent.

    ``conflict`` is set when more than one template clears the conflict
    threshold; ``best`` is still the single highest match.
    """

    found: bool
    best: TemplateMatch | None = None
    conflict: bool = False
    conflicting: list[TemplateMatch] = field(default_factory=list)
