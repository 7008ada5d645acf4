"""Chat request handling: fan out, sanitize, synthesize, remember."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
import asyncio
import logging

from vevo.arithmetic import compute, format_result
from vevo.audit import AuditLog
from vevo.config import Config
from vevo.confidence import ConfidenceEngine
from vevo.credentials import CredentialPool
from vevo.dispatcher import DispatchResult, FailoverDispatcher, ReasoningTrace
from vevo.memory import ChatTurn, LearningQueue, MemoryStore
from vevo.persona import system_prompt
from vevo.providers import ProviderClient, build_providers
from vevo.sanitizer import generate_without_leakage, scrub

logger = logging.getLogger(__name__)

ARITHMETIC_SOURCE = "mathCore"


@dataclass
class ChatResponse:
    reply: str
    sources: List[str] = field(default_factory=list)
    reasoning_summary: str = ""
    confidence: float = 0.0
    memory_update: bool = False
    errors: List[Dict[str, Any]] = field(default_factory=list)
    is_fallback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reply": self.reply,
            "sources": self.sources,
            "reasoning_summary": self.reasoning_summary,
            "confidence": self.confidence,
            "memory_update": self.memory_update,
            "errors": self.errors,
            "isFallback": self.is_fallback,
        }


class ChatService:
    def __init__(
        self,
        providers: Sequence[ProviderClient],
        memory: MemoryStore,
        queue: LearningQueue,
        dispatcher: Optional[FailoverDispatcher] = None,
        engine: Optional[ConfidenceEngine] = None,
        persona: str = "Jarvis",
        leakage_retries: int = 3,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.providers = list(providers)
        self.memory = memory
        self.queue = queue
        self.dispatcher = dispatcher or FailoverDispatcher()
        self.engine = engine or ConfidenceEngine()
        self.persona = persona
        self.leakage_retries = leakage_retries
        self.environ = environ

    @classmethod
    def from_config(
        cls,
        config: Config,
        memory: MemoryStore,
        queue: LearningQueue,
        error_log: Optional[AuditLog] = None,
    ) -> "ChatService":
        return cls(
            providers=build_providers(config),
            memory=memory,
            queue=queue,
            dispatcher=FailoverDispatcher(error_log),
            persona=str(config.persona.get("name", "Jarvis")),
            leakage_retries=config.leakage_retries,
        )

    def pool_for(self, provider: ProviderClient) -> CredentialPool:
        return CredentialPool.from_env(provider.name, provider.credential_slots, self.environ)

    async def handle_chat(self, message: str) -> ChatResponse:
        trace = ReasoningTrace()
        replies: List[str] = []
        sources: List[str] = []
        errors: List[Dict[str, Any]] = []

        math_result = compute(message)
        arithmetic_used = math_result is not None
        if arithmetic_used:
            replies.append(format_result(math_result))
            sources.append(ARITHMETIC_SOURCE)

        for provider, result in await self._fan_out(message, trace):
            errors.extend(result.errors)
            content = scrub(result.content)
            if content:
                replies.append(content)
                sources.append(provider.name)

        synthesis = self.engine.evaluate(replies, sources, arithmetic_used=arithmetic_used)
        for line in synthesis.trace:
            trace.add(line)
        if synthesis.is_fallback:
            item = await self.queue.enqueue(message, sources, errors)
            logger.info("Queued message for learning (item %s)", item.id)

        turn = ChatTurn(
            id=self.memory.next_id(),
            message=message,
            reply=synthesis.reply,
            confidence=synthesis.confidence,
            sources=list(sources),
            is_fallback=synthesis.is_fallback,
        )
        await self.memory.append(turn)

        return ChatResponse(
            reply=synthesis.reply,
            sources=sources,
            reasoning_summary=trace.summary(),
            confidence=synthesis.confidence,
            memory_update=True,
            errors=errors,
            is_fallback=synthesis.is_fallback,
        )

    async def _fan_out(self, message: str, trace: ReasoningTrace) -> List[Tuple[ProviderClient, DispatchResult]]:
        """Query every provider concurrently; results come back in arrival order."""
        if not self.providers:
            return []

        async def _run(provider: ProviderClient) -> Tuple[ProviderClient, DispatchResult]:
            return provider, await self.query_provider(provider, message, trace)

        results = []
        for next_done in asyncio.as_completed([_run(provider) for provider in self.providers]):
            results.append(await next_done)
        return results

    async def query_provider(self, provider: ProviderClient, message: str, trace: ReasoningTrace) -> DispatchResult:
        pool = self.pool_for(provider)
        if not pool:
            trace.add(f"{provider.name} skipped: no credentials configured")
            logger.debug("No credentials configured for %s", provider.name)
            return DispatchResult(provider=provider.name)

        system = system_prompt(self.persona)

        async def _call(credential: str, index: int) -> Optional[str]:
            if provider.kind == "lookup":
                return scrub(await provider.complete(credential, message)) or None

            async def _generate(prompt: str) -> str:
                return await provider.complete(credential, prompt, system)

            outcome = await generate_without_leakage(
                _generate,
                message,
                max_attempts=self.leakage_retries,
                persona=self.persona,
                label=provider.name,
            )
            return outcome.content or None

        return await self.dispatcher.dispatch(pool, _call, trace)
