"""FastAPI server for Vevo."""
from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from datetime import datetime
from typing import Any, Dict, Tuple
import asyncio
import contextlib
import logging
import sys

from vevo.audit import AuditLog
from vevo.chat import ChatService
from vevo.config import Config, get_config
from vevo.credentials import CredentialPool
from vevo.errors import ProviderFailure
from vevo.guardrail import is_protected
from vevo.learning import LearningReviewer
from vevo.memory import LearningQueue, MemoryStore
from vevo.persona import LOCAL_INTRODUCTION, system_prompt
from vevo.providers import ProviderClient, build_provider
from vevo.sanitizer import generate_without_leakage, scrub
from vevo.self_edit import SelfEditPipeline

logger = logging.getLogger(__name__)

app = FastAPI(title="Vevo")

PERSONA_TEST_PROMPT = "Provide a short 2-3 sentence answer introducing yourself."


def _install_crash_handlers(error_log: AuditLog) -> None:
    """Log uncaught exceptions and unhandled task errors instead of dying."""

    def _excepthook(exc_type, exc, tb) -> None:
        error_log.log("uncaught_exception", {"type": exc_type.__name__, "error": str(exc)})
        logger.error("Uncaught exception", exc_info=(exc_type, exc, tb))

    def _loop_handler(loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
        exc = context.get("exception")
        error_log.log("unhandled_rejection", {
            "message": context.get("message"),
            "error": str(exc) if exc else None,
        })
        logger.error("Unhandled async error: %s", context.get("message"), exc_info=exc)

    sys.excepthook = _excepthook
    asyncio.get_running_loop().set_exception_handler(_loop_handler)


def build_state(config: Config) -> Dict[str, Any]:
    error_log = AuditLog(config.logs_dir / "errors.jsonl")
    memory = MemoryStore(config.data_dir / "memory.json").load()
    queue = LearningQueue(config.data_dir / "learning_queue.json").load()
    return {
        "config": config,
        "error_log": error_log,
        "memory": memory,
        "queue": queue,
        "chat": ChatService.from_config(config, memory, queue, error_log),
        "self_edit": SelfEditPipeline.from_config(config, error_log),
        "reviewer": LearningReviewer.from_config(config, memory, error_log),
        "persona_provider": build_provider(str(config.persona.get("provider", "openrouter")), config),
        "edit_locks": {},
    }


@app.on_event("startup")
async def _startup() -> None:
    config = get_config()
    for key, value in build_state(config).items():
        setattr(app.state, key, value)
    _install_crash_handlers(app.state.error_log)
    app.state.review_task = None
    interval = config.review_interval_seconds
    if interval > 0:
        app.state.review_task = asyncio.create_task(app.state.reviewer.run_forever(interval))
    logger.info("Vevo startup complete (data dir %s)", config.data_dir)


@app.on_event("shutdown")
async def _shutdown() -> None:
    task = getattr(app.state, "review_task", None)
    if task is not None:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
    memory = getattr(app.state, "memory", None)
    if memory is not None:
        memory.flush()


@app.exception_handler(Exception)
async def _unhandled(request: Request, exc: Exception):
    error_log = getattr(request.app.state, "error_log", None)
    if error_log is not None:
        error_log.log("request.error", {"path": request.url.path, "error": str(exc)})
    logger.error("Unhandled error on %s", request.url.path, exc_info=exc)
    return JSONResponse({"error": str(exc) or exc.__class__.__name__}, status_code=500)


def _chat_provider(request: Request) -> ProviderClient | None:
    return request.app.state.persona_provider


@app.get("/health")
async def health():
    """Health check endpoint for monitoring."""
    return {"status": "healthy", "service": "vevo"}


@app.post("/api/chat")
async def chat_api(payload: dict, request: Request):
    message = payload.get("message")
    if not isinstance(message, str) or not message:
        return JSONResponse({"error": "No message provided"}, status_code=400)
    response = await request.app.state.chat.handle_chat(message)
    return response.to_dict()


@app.post("/api/self-edit")
async def self_edit_api(payload: dict, request: Request):
    file_path = payload.get("filePath")
    feedback = str(payload.get("feedback") or "")
    patterns = request.app.state.config.protected_patterns
    if not isinstance(file_path, str) or is_protected(file_path, patterns):
        return JSONResponse(
            {"success": False, "error": "Editing critical files is not allowed."},
            status_code=403,
        )
    pipeline: SelfEditPipeline = request.app.state.self_edit
    if not pipeline.files.exists(file_path):
        return JSONResponse({"success": False, "error": "file not found"}, status_code=404)
    locks: Dict[str, Tuple[asyncio.Lock, int]] = request.app.state.edit_locks
    lock, users = locks.get(file_path, (asyncio.Lock(), 0))
    locks[file_path] = (lock, users + 1)
    try:
        async with lock:
            result = await pipeline.run(file_path, feedback)
    finally:
        lock, users = locks[file_path]
        if users > 1:
            locks[file_path] = (lock, users - 1)
        else:
            del locks[file_path]
    return result.to_dict()


@app.post("/api/review-learn")
async def review_learn_api(request: Request):
    result = await request.app.state.reviewer.review()
    return {"success": result is not None, "result": result}


@app.get("/api/learning-status")
async def learning_status_api(request: Request):
    return request.app.state.reviewer.status()


@app.get("/api/system-status")
async def system_status_api(request: Request):
    return {
        "status": "operational",
        "memory": len(request.app.state.memory),
        "learning_queue": len(request.app.state.queue.pending()),
        "personality": request.app.state.memory.personality,
        "time": datetime.now().astimezone().isoformat(timespec="seconds"),
    }


@app.get("/api/test-keys")
async def test_keys_api(request: Request):
    provider = _chat_provider(request)
    if provider is None:
        return {"provider": None, "valid": [], "errors": []}
    pool = CredentialPool.from_env(provider.name, provider.credential_slots)
    results: Dict[str, Any] = {"provider": provider.name, "valid": [], "errors": []}
    for index, credential in enumerate(pool):
        key = f"KEY_{index + 1}"
        try:
            await provider.complete(credential, "Test key")
        except ProviderFailure as exc:
            request.app.state.error_log.log("provider.key_test", {"key": key, **exc.error.to_dict()})
            results["errors"].append({"key": key, "status": exc.error.status, "message": exc.error.message})
            continue
        results["valid"].append(key)
    return results


@app.get("/api/test-persona")
async def test_persona_api(request: Request):
    name = str(request.app.state.config.persona.get("name", "Jarvis"))
    provider = _chat_provider(request)
    pool = CredentialPool.from_env(provider.name, provider.credential_slots) if provider else CredentialPool("none")
    if provider is None or not pool:
        return {"persona": name.lower(), "sample": LOCAL_INTRODUCTION.format(name=name)}
    credential = pool.first

    async def _generate(prompt: str) -> str:
        return await provider.complete(credential, prompt, system_prompt(name))

    try:
        outcome = await generate_without_leakage(
            _generate,
            PERSONA_TEST_PROMPT,
            max_attempts=request.app.state.config.leakage_retries,
            persona=name,
            label=f"{provider.name} persona-test",
        )
    except ProviderFailure as exc:
        request.app.state.error_log.log("persona.test_failed", exc.error.to_dict())
        return JSONResponse({"error": scrub(exc.error.message)}, status_code=500)
    return {"persona": name.lower(), "sample": outcome.content}


def main():
    import uvicorn
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    config = get_config()
    host = config.server.get("host", "127.0.0.1")
    port = int(config.server.get("port", 8080))
    uvicorn.run("vevo.server:app", host=host, port=port, reload=False)


if __name__ == "__main__":
    main()
