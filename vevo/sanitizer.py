"""Persona scrubbing and leakage-avoidance retries.

All text leaving the backend goes through :func:`scrub`. The rules are an
ordered tuple of ``(pattern, replacement)`` pairs applied until the text stops
changing; every replacement is shorter than what it matches, so the loop
terminates and ``scrub(scrub(x)) == scrub(x)``.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Pattern, Tuple
import json
import logging
import re

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"

SCRUB_RULES: Tuple[Tuple[Pattern[str], str], ...] = (
    (re.compile(r"As an? (?:AI )?language model[^.]*\.?", re.IGNORECASE), ""),
    (re.compile(r"I am an? AI developed by [^.]*(?:\.|$)", re.IGNORECASE), ""),
    (re.compile(r"As an AI[^.]*(?:\.|$)", re.IGNORECASE), ""),
    (re.compile(r"I don't have the capability to[^.]*(?:\.|$)", re.IGNORECASE), ""),
    (re.compile(r"\[object Object\]", re.IGNORECASE), "[object]"),
    (re.compile(r"openrouter\.ai", re.IGNORECASE), ""),
    (re.compile(r"\bOpenRouter\b", re.IGNORECASE), ""),
    (re.compile(r"\bOpenAI\b", re.IGNORECASE), ""),
    (re.compile(r"\bHugging ?Face\b", re.IGNORECASE), ""),
    (re.compile(r"\bxAI\b", re.IGNORECASE), ""),
    (re.compile(r"\bGoogle(?: AI)?\b", re.IGNORECASE), ""),
    (re.compile(r"(?:sk-|api_|key=)[A-Za-z0-9_-]{16,}", re.IGNORECASE), REDACTED),
)

LEAKAGE_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"OpenAI|openrouter|Hugging ?Face|\bxAI\b|Google", re.IGNORECASE),
    re.compile(r"I am an? AI\b", re.IGNORECASE),
)

STRICT_INSTRUCTION = (
    "Please reply strictly as {persona} and do not include any provider or vendor names."
)


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list, tuple)):
        try:
            return json.dumps(value, default=str)
        except (TypeError, ValueError):
            return str(value)
    return str(value)


def scrub(value: Any) -> Optional[str]:
    """Remove vendor self-identification and secret-like substrings.

    ``None`` passes through; anything else comes back as a stripped string.
    """
    if value is None:
        return None
    text = _as_text(value)
    while True:
        previous = text
        for pattern, replacement in SCRUB_RULES:
            text = pattern.sub(replacement, text)
        text = text.strip()
        if text == previous:
            return text


def has_leakage(text: Optional[str]) -> bool:
    if not text:
        return False
    return any(pattern.search(text) for pattern in LEAKAGE_PATTERNS)


@dataclass
class LeakageOutcome:
    content: Optional[str]
    attempts: int
    clean: bool


Generate = Callable[[str], Awaitable[Optional[str]]]


async def generate_without_leakage(
    generate: Generate,
    prompt: str,
    max_attempts: int = 3,
    persona: str = "Jarvis",
    label: str = "provider",
) -> LeakageOutcome:
    """Call ``generate`` until its raw reply is free of vendor leakage.

    Each leaking reply re-issues the request with a stricter instruction
    prepended. After ``max_attempts`` the last sanitized reply is returned
    regardless. Provider failures raised by ``generate`` propagate unchanged.
    """
    max_attempts = max(1, int(max_attempts))
    instruction = STRICT_INSTRUCTION.format(persona=persona)
    current = prompt
    content: Optional[str] = None
    attempt = 0
    while attempt < max_attempts:
        attempt += 1
        raw = await generate(current)
        content = scrub(raw)
        if not has_leakage(raw):
            logger.debug("%s reply clean on attempt %d/%d", label, attempt, max_attempts)
            return LeakageOutcome(content=content, attempts=attempt, clean=True)
        logger.info("%s vendor mentions detected; attempt %d/%d", label, attempt, max_attempts)
        if not current.startswith(instruction):
            current = f"{instruction} {current}"
    return LeakageOutcome(content=content, attempts=attempt, clean=False)
