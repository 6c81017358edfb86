"""
Prompt rewriting strategies.

Each strategy is a pure string transform that reports whether it
improved the prompt and why.

Auto-selection Order:
1. Compression - Prompt above 80% of the token ceiling
2. Template-based - A template exists for the tool
3. Context-aware - Non-trivial task with history to draw on
4. Heuristic - Premium quality requirements
5. Compression - Default
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

from .token_counter import estimate_tokens


class Strategy(Enum):
    COMPRESSION = "compression"
    CONTEXT_AWARE = "context-aware"
    TEMPLATE_BASED = "template-based"
    ADAPTIVE = "adaptive"
    HEURISTIC = "heuristic"


class TaskComplexity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class QualityRequirements(Enum):
    BASIC = "basic"
    STANDARD = "standard"
    PREMIUM = "premium"


@dataclass(frozen=True)
class StrategyResult:
    """Outcome of applying one strategy."""
    prompt: str
    improved: bool
    reason: str


# Ordered (name, pattern, replacement); every replacement is shorter than
# anything its pattern can match, so compression never adds characters.
COMPRESSION_PATTERNS: List[Tuple[str, re.Pattern, str]] = [
    ("verbose_requests",
     re.compile(r"\bplease\s+(?:kindly\s+)?(?:help\s+me\s+)?(?:to\s+)?", re.IGNORECASE), ""),
    ("redundant_politeness",
     re.compile(r"\b(?:if\s+you\s+(?:would|could|can)|would\s+you\s+(?:mind|please)|"
                r"could\s+you\s+(?:please|kindly))\b", re.IGNORECASE), ""),
    ("courtesy_words",
     re.compile(r"\b(?:kindly|please)\b,?\s*", re.IGNORECASE), ""),
    ("filler_words",
     re.compile(r"\b(?:actually|basically|essentially|literally|obviously|clearly|simply)\s+",
                re.IGNORECASE), ""),
    ("redundant_phrases",
     re.compile(r"\b(?:in\s+order\s+to|for\s+the\s+purpose\s+of)\b", re.IGNORECASE), "to"),
    ("verbose_conjunctions",
     re.compile(r"\b(?:in\s+addition\s+to\s+that|furthermore|moreover|additionally)\b",
                re.IGNORECASE), "also"),
]

REDUNDANT_PHRASES = [
    re.compile(r"\b(?:please\s+note\s+that|it\s+is\s+important\s+to\s+note\s+that)\b", re.IGNORECASE),
    re.compile(r"\b(?:as\s+you\s+can\s+see|as\s+mentioned\s+(?:above|before))\b", re.IGNORECASE),
]

WHITESPACE = re.compile(r"\s+")
WORD_SPLIT = re.compile(r"\W+")
COMPLEXITY_WORDS = re.compile(r"\b(?:comprehensive|detailed|thorough)\b", re.IGNORECASE)

MAX_HISTORY_ENTRIES = 2
MIN_SHARED_WORDS = 3
MIN_SENTENCE_LENGTH = 20
MAX_KEY_SENTENCES = 3
ADAPTIVE_TOKEN_THRESHOLD = 1000
COMPRESSION_TRIGGER = 0.8


def compress(prompt: str) -> StrategyResult:
    """Strip politeness, filler and redundant phrasing, then collapse whitespace."""
    compressed = prompt
    patterns_applied = 0

    for _name, pattern, replacement in COMPRESSION_PATTERNS:
        before = len(compressed)
        compressed = pattern.sub(replacement, compressed)
        if len(compressed) < before:
            patterns_applied += 1

    for pattern in REDUNDANT_PHRASES:
        compressed = pattern.sub("", compressed)

    compressed = WHITESPACE.sub(" ", compressed).strip()

    improved = len(compressed) < len(prompt)
    if not improved:
        return StrategyResult(prompt, False, "No compression improvements found")

    savings_percent = round((len(prompt) - len(compressed)) / len(prompt) * 100)
    return StrategyResult(
        compressed,
        True,
        f"Compression reduced length by {savings_percent}% using {patterns_applied} patterns"
    )


def _significant_words(text: str) -> List[str]:
    return [w for w in WORD_SPLIT.split(text.lower()) if len(w) > 3]


def _shared_word_count(prompt_words: Sequence[str], entry: str) -> int:
    # Every prompt word occurrence found in the entry counts, repeats included
    entry_words = set(_significant_words(entry))
    return sum(1 for word in prompt_words if word in entry_words)


def extract_relevant_history(prompt: str, history: Sequence[str]) -> List[str]:
    """History entries sharing at least three significant words with the prompt."""
    prompt_words = _significant_words(prompt)
    relevant = [
        entry for entry in history
        if _shared_word_count(prompt_words, entry) >= MIN_SHARED_WORDS
    ]
    return relevant[:MAX_HISTORY_ENTRIES]


def apply_context_aware(
    prompt: str,
    history: Sequence[str],
    complexity: TaskComplexity = TaskComplexity.MEDIUM
) -> StrategyResult:
    """Inject relevant history and tune wording to task complexity.

    Only counts as an improvement when the token count does not grow.
    """
    optimized = prompt

    if history:
        relevant = extract_relevant_history(prompt, history)
        if relevant:
            injection = f"Context from previous interactions: {'; '.join(relevant)}"
            optimized = f"{injection}\n\n{prompt}"

    if complexity == TaskComplexity.LOW:
        optimized = WHITESPACE.sub(" ", COMPLEXITY_WORDS.sub("", optimized)).strip()
    elif complexity == TaskComplexity.HIGH:
        lowered = optimized.lower()
        if "comprehensive" not in lowered and "detailed" not in lowered:
            optimized = f"Provide a comprehensive and detailed answer. {optimized}"

    improved = optimized != prompt and estimate_tokens(optimized) <= estimate_tokens(prompt)
    if not improved:
        return StrategyResult(optimized, False, "No context-aware improvements applicable")
    return StrategyResult(
        optimized,
        True,
        f"Context-aware optimization applied based on {complexity.value} complexity"
    )


def extract_key_information(prompt: str) -> str:
    """First three sentences longer than 20 characters."""
    sentences = [s.strip() for s in prompt.split(".") if len(s.strip()) > MIN_SENTENCE_LENGTH]
    return ". ".join(sentences[:MAX_KEY_SENTENCES])


def apply_template_based(
    prompt: str,
    output_format: str,
    template_available: bool,
    render_content: Optional[Callable[[str], str]] = None
) -> StrategyResult:
    """Restate the prompt's key sentences through the selected template.

    Args:
        prompt: Prompt to rewrite
        output_format: Requested output format, used by the fallback sentence
        template_available: Whether a template was selected for the request
        render_content: Renders the template with a `content` value; None when
            the template has no content placeholder
    """
    if not template_available:
        return StrategyResult(prompt, False, "No template available for tool")

    key_info = extract_key_information(prompt)
    if not key_info:
        return StrategyResult(prompt, False, "No extractable content for template")

    if render_content is not None:
        templated = render_content(key_info)
    else:
        templated = f"Create {output_format} for {key_info}. Follow best practices."

    token_savings = estimate_tokens(prompt) - estimate_tokens(templated)
    if token_savings <= 0:
        return StrategyResult(templated, False, "Template did not improve efficiency")
    return StrategyResult(templated, True, f"Template optimization saved {token_savings} tokens")


def apply_adaptive(prompt: str) -> StrategyResult:
    """Compress long prompts, pass short ones through."""
    if estimate_tokens(prompt) > ADAPTIVE_TOKEN_THRESHOLD:
        return compress(prompt)
    return StrategyResult(prompt, False, "Prompt below adaptive compression threshold")


class HeuristicOptimizer(Protocol):
    """Extension point for model-driven optimization."""

    def optimize(self, prompt: str, task_complexity: TaskComplexity) -> StrategyResult:
        ...


class NullHeuristicOptimizer:
    """Default heuristic optimizer: never changes the prompt."""

    def optimize(self, prompt: str, task_complexity: TaskComplexity) -> StrategyResult:
        return StrategyResult(prompt, False, "No heuristic optimizations found")


def select_strategy(
    token_count: int,
    max_tokens: int,
    has_template: bool,
    task_complexity: TaskComplexity,
    history: Sequence[str],
    quality_requirements: QualityRequirements
) -> Tuple[Strategy, str]:
    """Pick a strategy when the caller has not pinned one.

    Returns:
        (strategy, reason)
    """
    if token_count > max_tokens * COMPRESSION_TRIGGER:
        return Strategy.COMPRESSION, f"{token_count} tokens is above 80% of the {max_tokens} token limit"
    if has_template:
        return Strategy.TEMPLATE_BASED, "Template available for tool"
    if task_complexity != TaskComplexity.LOW and history:
        return Strategy.CONTEXT_AWARE, "Context history available for non-trivial task"
    if quality_requirements == QualityRequirements.PREMIUM:
        return Strategy.HEURISTIC, "Premium quality requested"
    return Strategy.COMPRESSION, "Default strategy"
