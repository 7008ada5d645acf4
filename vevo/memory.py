"""File-backed interaction memory and learning queue.

Both stores are loaded once at startup and rewritten in full after every
mutation, so a crash loses at most the in-flight request. They assume a
single writer process.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
import asyncio
import json
import logging
import os
import time

logger = logging.getLogger(__name__)

DEFAULT_PERSONALITY = "friendly"


def _now() -> str:
    return datetime.now().astimezone().isoformat(timespec="seconds")


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
    os.replace(tmp, path)


class _MonotonicIds:
    """Millisecond timestamps, bumped so that ids never repeat or go backwards."""

    def __init__(self) -> None:
        self._last = 0

    def seed(self, value: int) -> None:
        self._last = max(self._last, int(value))

    def next(self) -> int:
        value = max(int(time.time() * 1000), self._last + 1)
        self._last = value
        return value


@dataclass(frozen=True)
class ChatTurn:
    id: int
    message: str
    reply: str
    confidence: float
    sources: List[str] = field(default_factory=list)
    is_fallback: bool = False
    task_type: str = "chat"
    created_at: str = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class QueuedLearningItem:
    id: int
    message: str
    sources: List[str] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    timestamp: str = field(default_factory=_now)
    status: str = "queued"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class MemoryStore:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.personality = DEFAULT_PERSONALITY
        self.turns: List[Dict[str, Any]] = []
        self._ids = _MonotonicIds()
        self._lock = asyncio.Lock()

    def load(self) -> "MemoryStore":
        self.personality = DEFAULT_PERSONALITY
        self.turns = []
        if not self.path.exists():
            return self
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("Memory store %s unreadable; starting empty", self.path, exc_info=True)
            return self
        if not isinstance(data, dict):
            logger.warning("Memory store %s has unexpected shape; starting empty", self.path)
            return self
        self.personality = str(data.get("personality") or DEFAULT_PERSONALITY)
        turns = data.get("learned_responses") or []
        self.turns = [turn for turn in turns if isinstance(turn, dict)]
        for turn in self.turns:
            if isinstance(turn.get("id"), int):
                self._ids.seed(turn["id"])
        return self

    def next_id(self) -> int:
        return self._ids.next()

    async def append(self, turn: ChatTurn) -> None:
        async with self._lock:
            self.turns.append(turn.to_dict())
            self.flush()

    def flush(self) -> None:
        _write_json(self.path, {"personality": self.personality, "learned_responses": self.turns})

    def __len__(self) -> int:
        return len(self.turns)

    def snapshot(self) -> Dict[str, Any]:
        return {"personality": self.personality, "learned_responses": list(self.turns)}


class LearningQueue:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.items: List[Dict[str, Any]] = []
        self._ids = _MonotonicIds()
        self._lock = asyncio.Lock()

    def load(self) -> "LearningQueue":
        self.items = []
        if not self.path.exists():
            return self
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("Learning queue %s unreadable; starting empty", self.path, exc_info=True)
            return self
        if isinstance(data, list):
            self.items = [item for item in data if isinstance(item, dict)]
        for item in self.items:
            if isinstance(item.get("id"), int):
                self._ids.seed(item["id"])
        return self

    async def enqueue(
        self,
        message: str,
        sources: List[str],
        errors: Optional[List[Dict[str, Any]]] = None,
    ) -> QueuedLearningItem:
        async with self._lock:
            item = QueuedLearningItem(
                id=self._ids.next(),
                message=message,
                sources=list(sources),
                errors=list(errors or []),
            )
            self.items.append(item.to_dict())
            _write_json(self.path, self.items)
            return item

    def pending(self) -> List[Dict[str, Any]]:
        return [item for item in self.items if item.get("status") == "queued"]

    def __len__(self) -> int:
        return len(self.items)
