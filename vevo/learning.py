"""Periodic review of past dialogues into a learning plan."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Mapping, Optional
import asyncio
import json
import logging

from vevo.audit import AuditLog
from vevo.config import Config
from vevo.credentials import CredentialPool
from vevo.dispatcher import FailoverDispatcher
from vevo.errors import ConfigurationFailure
from vevo.memory import MemoryStore
from vevo.persona import REVIEW_PROMPT
from vevo.providers import ChatCompletionClient, build_provider
from vevo.sanitizer import scrub
from vevo.self_edit import unwrap_code_fence

logger = logging.getLogger(__name__)


class LearningReviewer:
    def __init__(
        self,
        provider: Optional[ChatCompletionClient],
        memory: MemoryStore,
        plan_path: Path,
        log: AuditLog,
        dispatcher: Optional[FailoverDispatcher] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.provider = provider
        self.memory = memory
        self.plan_path = Path(plan_path)
        self.log = log
        self.dispatcher = dispatcher or FailoverDispatcher()
        self.environ = environ

    @classmethod
    def from_config(
        cls,
        config: Config,
        memory: MemoryStore,
        error_log: Optional[AuditLog] = None,
    ) -> "LearningReviewer":
        provider = build_provider(str(config.learning.get("provider", "openrouter")), config)
        if provider is not None and not isinstance(provider, ChatCompletionClient):
            raise ConfigurationFailure(f"learning provider {provider.name} must be a chat provider")
        return cls(
            provider=provider,
            memory=memory,
            plan_path=config.data_dir / "learning_plan.json",
            log=AuditLog(config.logs_dir / "learning.jsonl"),
            dispatcher=FailoverDispatcher(error_log),
        )

    async def review(self) -> Dict[str, Any] | None:
        provider = self.provider
        if provider is None:
            self.log.log("learning.skipped", {"reason": "no learning provider configured"})
            return None
        pool = CredentialPool.from_env(provider.name, provider.credential_slots, self.environ)
        if not pool:
            self.log.log("learning.skipped", {"reason": "no credential configured"})
            return None

        memory_json = json.dumps(self.memory.snapshot(), default=str)

        async def _call(credential: str, index: int) -> Optional[str]:
            messages = provider.build_messages(memory_json, REVIEW_PROMPT)
            return await provider.chat(credential, messages)

        result = await self.dispatcher.dispatch(pool, _call)
        if result.content is None:
            self.log.log("learning.failed", {"errors": result.errors})
            logger.warning("Learning review failed: %s", [e.get("message") for e in result.errors])
            return None

        plan = self.parse_plan(result.content)
        self.plan_path.parent.mkdir(parents=True, exist_ok=True)
        self.plan_path.write_text(json.dumps(plan, indent=2))
        self.log.log("learning.plan", {"plan": plan})
        return plan

    @staticmethod
    def parse_plan(raw: str) -> Dict[str, Any]:
        text = unwrap_code_fence(raw.strip())
        try:
            plan = json.loads(text)
        except ValueError:
            return {"error": "Malformed JSON", "raw_content": scrub(raw)}
        if not isinstance(plan, dict):
            return {"plan": plan}
        return plan

    def latest_plan(self) -> Dict[str, Any] | None:
        if not self.plan_path.exists():
            return None
        try:
            return json.loads(self.plan_path.read_text())
        except (OSError, ValueError) as exc:
            return {"error": "Failed to read learning plan", "details": str(exc)}

    def status(self, log_lines: int = 10) -> Dict[str, Any]:
        return {
            "learningPlan": self.latest_plan(),
            "recentLogs": "\n".join(self.log.tail(log_lines)),
        }

    async def run_forever(self, interval_seconds: float) -> None:
        """Review immediately, then every ``interval_seconds`` until cancelled."""
        while True:
            logger.info("Running scheduled memory review and learning")
            try:
                await self.review()
            except Exception as exc:
                self.log.log("learning.error", {"error": str(exc)})
                logger.exception("Scheduled learning review failed")
            await asyncio.sleep(interval_seconds)
