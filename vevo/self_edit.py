"""Self-modification pipeline: request a rewrite, validate it, commit or roll back.

The pipeline performs no path-safety checks of its own. It trusts its caller
to have rejected protected targets (see :mod:`vevo.guardrail`) before ``run``
is invoked, and it does not serialize concurrent edits of the same file.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional
import asyncio
import json
import logging
import os
import re
import sys

from vevo.audit import AuditLog
from vevo.config import Config
from vevo.credentials import CredentialPool
from vevo.dispatcher import FailoverDispatcher, ReasoningTrace
from vevo.errors import ConfigurationFailure, ValidationFailure
from vevo.persona import self_edit_prompt, self_edit_system_prompt
from vevo.providers import ChatCompletionClient, build_provider
from vevo.sanitizer import generate_without_leakage

logger = logging.getLogger(__name__)

CANDIDATE_MARKER = ".candidate"
_FENCE = re.compile(r"^\s*```[\w.+-]*[ \t]*\n([\s\S]*?)\n?```\s*$")

PY_SYNTAX_CHECK = "import ast, sys; ast.parse(open(sys.argv[1], encoding='utf-8').read(), sys.argv[1])"

DEFAULT_VALIDATORS: Dict[str, List[str]] = {
    ".py": ["python", "-c", PY_SYNTAX_CHECK],
    ".js": ["node", "--check"],
    ".mjs": ["node", "--check"],
    ".cjs": ["node", "--check"],
}


class EditState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    VALIDATING = "validating"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    SKIPPED = "skipped"


@dataclass
class EditCandidate:
    target: Path
    candidate_path: Path
    content: str
    feedback: str
    created_at: str = field(default_factory=lambda: datetime.now().astimezone().isoformat(timespec="seconds"))


@dataclass
class EditResult:
    ok: bool
    state: EditState
    target: str
    reason: Optional[str] = None
    trace: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.ok,
            "state": self.state.value,
            "target": self.target,
            "reason": self.reason,
            "trace": self.trace,
        }


class LocalFileStore:
    def read_text(self, path: Path) -> str:
        return Path(path).read_text(encoding="utf-8")

    def write_text(self, path: Path, text: str) -> None:
        Path(path).write_text(text, encoding="utf-8")

    def rename(self, source: Path, dest: Path) -> None:
        os.replace(source, dest)

    def delete(self, path: Path) -> None:
        Path(path).unlink()

    def exists(self, path: Path) -> bool:
        return Path(path).exists()


@dataclass
class ValidationReport:
    ok: bool
    diagnostic: str = ""


class SyntaxValidator:
    """Runs an external syntax check chosen by the target's suffix.

    ``.json`` files are parsed in-process. Suffixes with no configured checker
    fail validation, so unverifiable candidates are never committed.
    """

    def __init__(self, commands: Optional[Mapping[str, List[str]]] = None, timeout: float = 30.0) -> None:
        self.commands = dict(DEFAULT_VALIDATORS if commands is None else commands)
        self.timeout = timeout

    def command_for(self, suffix: str) -> Optional[List[str]]:
        command = self.commands.get(suffix.lower())
        if not command:
            return None
        command = list(command)
        if command[0] == "python":
            command[0] = sys.executable
        return command

    async def check(self, path: Path, suffix: Optional[str] = None) -> ValidationReport:
        suffix = (suffix or Path(path).suffix).lower()
        if suffix == ".json" and suffix not in self.commands:
            try:
                json.loads(Path(path).read_text(encoding="utf-8"))
            except ValueError as exc:
                return ValidationReport(False, f"invalid JSON: {exc}")
            return ValidationReport(True)
        command = self.command_for(suffix)
        if command is None:
            return ValidationReport(False, f"no syntax validator configured for '{suffix or path}'")
        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                str(path),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            return ValidationReport(False, f"{command[0]} unavailable: {exc}")
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            return ValidationReport(False, f"syntax check timed out after {self.timeout:.0f}s")
        if proc.returncode == 0:
            return ValidationReport(True)
        out = ((stderr or b"") + b"\n" + (stdout or b"")).decode("utf-8", errors="replace").strip()
        return ValidationReport(False, out[:2000] or f"exit {proc.returncode}")


def unwrap_code_fence(text: str) -> str:
    match = _FENCE.match(text)
    return match.group(1) if match else text


def match_line_ending(content: str, original: str) -> str:
    """Give ``content`` the same final newline as ``original``."""
    if original.endswith("\n") and not content.endswith("\n"):
        return content + "\n"
    return content


class SelfEditPipeline:
    def __init__(
        self,
        provider: Optional[ChatCompletionClient],
        audit: AuditLog,
        dispatcher: Optional[FailoverDispatcher] = None,
        validator: Optional[SyntaxValidator] = None,
        file_store: Optional[LocalFileStore] = None,
        persona: str = "Jarvis",
        leakage_retries: int = 3,
        candidate_marker: str = CANDIDATE_MARKER,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.provider = provider
        self.audit = audit
        self.dispatcher = dispatcher or FailoverDispatcher()
        self.validator = validator or SyntaxValidator()
        self.files = file_store or LocalFileStore()
        self.persona = persona
        self.leakage_retries = leakage_retries
        self.candidate_marker = candidate_marker
        self.environ = environ

    @classmethod
    def from_config(
        cls,
        config: Config,
        error_log: Optional[AuditLog] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "SelfEditPipeline":
        cfg = config.self_edit
        provider = build_provider(str(cfg.get("provider", "openrouter")), config)
        if provider is not None and not isinstance(provider, ChatCompletionClient):
            raise ConfigurationFailure(f"self-edit provider {provider.name} must be a chat provider")
        validators = cfg.get("validators")
        return cls(
            provider=provider,
            audit=AuditLog(config.logs_dir / "self_edits.jsonl"),
            dispatcher=FailoverDispatcher(error_log),
            validator=SyntaxValidator(validators if isinstance(validators, dict) else None),
            persona=str(config.persona.get("name", "Jarvis")),
            leakage_retries=config.leakage_retries,
            candidate_marker=str(cfg.get("candidate_marker", CANDIDATE_MARKER)),
            environ=environ,
        )

    def candidate_path(self, target: Path) -> Path:
        """Sibling path: ``app.py`` -> ``app.py.candidate.py``."""
        return target.with_name(f"{target.name}{self.candidate_marker}{target.suffix}")

    async def run(self, file_path: str | Path, feedback: str) -> EditResult:
        target = Path(file_path)
        pool = self._pool()
        if not pool:
            logger.info("Self-edit skipped for %s: no credential configured", target)
            return EditResult(False, EditState.SKIPPED, str(target), "no credential configured")

        try:
            original = self.files.read_text(target)
        except OSError as exc:
            return EditResult(False, EditState.IDLE, str(target), f"target not readable: {exc}")

        trace = ReasoningTrace()
        state = EditState.REQUESTING
        logger.info("Self-edit %s: %s", target, state.value)
        content = await self._request(pool, feedback, original, trace)
        if not content:
            return self._rolled_back(target, None, "no content returned", trace)
        content = match_line_ending(content, original)

        candidate = EditCandidate(target, self.candidate_path(target), content, feedback)
        state = EditState.VALIDATING
        logger.info("Self-edit %s: %s %s", target, state.value, candidate.candidate_path)
        try:
            self.files.write_text(candidate.candidate_path, candidate.content)
            report = await self.validator.check(candidate.candidate_path, suffix=target.suffix)
            if not report.ok:
                raise ValidationFailure(report.diagnostic)
            self.files.rename(candidate.candidate_path, target)
        except ValidationFailure as exc:
            return self._rolled_back(target, candidate.candidate_path, exc.diagnostic, trace)
        except OSError as exc:
            return self._rolled_back(target, candidate.candidate_path, f"file operation failed: {exc}", trace)

        self.audit.log("self_edit.committed", {"target": str(target), "feedback": feedback})
        logger.info("Code updated successfully for %s", target)
        return EditResult(True, EditState.COMMITTED, str(target), trace=trace.lines)

    def _pool(self) -> CredentialPool:
        if self.provider is None:
            return CredentialPool("self-edit")
        return CredentialPool.from_env(self.provider.name, self.provider.credential_slots, self.environ)

    async def _request(self, pool: CredentialPool, feedback: str, original: str, trace: ReasoningTrace) -> Optional[str]:
        provider = self.provider
        assert provider is not None
        system = self_edit_system_prompt(self.persona)

        async def _call(credential: str, index: int) -> Optional[str]:
            async def _generate(prompt: str) -> str:
                messages = provider.build_messages(prompt, system, extra=[original])
                return await provider.chat(credential, messages)

            outcome = await generate_without_leakage(
                _generate,
                self_edit_prompt(feedback),
                max_attempts=self.leakage_retries,
                persona=self.persona,
                label=f"{provider.name} self-edit",
            )
            return outcome.content or None

        result = await self.dispatcher.dispatch(pool, _call, trace)
        if result.content is None:
            return None
        return unwrap_code_fence(result.content)

    def _rolled_back(self, target: Path, candidate_path: Optional[Path], reason: str, trace: ReasoningTrace) -> EditResult:
        if candidate_path is not None:
            try:
                if self.files.exists(candidate_path):
                    self.files.delete(candidate_path)
            except OSError:
                logger.error("Failed to delete candidate %s", candidate_path, exc_info=True)
        self.audit.log("self_edit.rolled_back", {"target": str(target), "error": reason})
        logger.warning("Update failed for %s; keeping previous version: %s", target, reason)
        return EditResult(False, EditState.ROLLED_BACK, str(target), reason, trace=trace.lines)
