"""Reply synthesis and confidence scoring."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Pattern, Sequence, Tuple
import re

FALLBACK_CONFIDENCE = 0.2
BASE_CONFIDENCE = 0.8
REPLY_SEPARATOR = " | "

CLARIFICATION_REPLY = (
    "I don't have a high-confidence answer yet. Would you like me to (A) clarify, "
    "(B) ask external sources, or (C) queue this for learning and return later?"
)

REFUSAL_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"As a language AI model", re.IGNORECASE),
    re.compile(r"As an AI language model", re.IGNORECASE),
    re.compile(r"I am an AI developed by", re.IGNORECASE),
    re.compile(r"\bI can(?:'|’)t\b"),
    re.compile(r"\bI cannot (?:answer|help|provide)\b", re.IGNORECASE),
    re.compile(r"\bI don(?:'|’)t know\b", re.IGNORECASE),
)


def confidence_for(source_count: int) -> float:
    """0.8 for one source, +0.1 for the second, halving increments after that.

    Strictly increasing in ``source_count`` and never above 1.0.
    """
    if source_count <= 0:
        return FALLBACK_CONFIDENCE
    return min(1.0, 1.0 - (1.0 - BASE_CONFIDENCE) * 0.5 ** (source_count - 1))


def is_refusal(reply: str) -> bool:
    return any(pattern.search(reply) for pattern in REFUSAL_PATTERNS)


@dataclass
class Synthesis:
    reply: str
    confidence: float
    is_fallback: bool
    sources: List[str] = field(default_factory=list)
    trace: List[str] = field(default_factory=list)


class ConfidenceEngine:
    def __init__(self, separator: str = REPLY_SEPARATOR, clarification: str = CLARIFICATION_REPLY) -> None:
        self.separator = separator
        self.clarification = clarification

    def evaluate(self, replies: Sequence[str], sources: Sequence[str], arithmetic_used: bool = False) -> Synthesis:
        contributing = [reply for reply in replies if reply]
        reply = self.separator.join(contributing)
        if not reply or is_refusal(reply):
            return Synthesis(
                reply=self.clarification,
                confidence=FALLBACK_CONFIDENCE,
                is_fallback=True,
                sources=list(sources),
                trace=["Unknown flow triggered: fallback or low-confidence answer."],
            )
        trace = []
        if arithmetic_used:
            trace.append("Used mathCore for computation")
        trace.append("Synthesized from: " + ", ".join(sources))
        return Synthesis(
            reply=reply,
            confidence=confidence_for(len(contributing)),
            is_fallback=False,
            sources=list(sources),
            trace=trace,
        )
