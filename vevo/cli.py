"""Command line interface for Vevo."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from vevo.audit import AuditLog
from vevo.chat import ChatService
from vevo.config import Config, get_config
from vevo.guardrail import is_protected
from vevo.learning import LearningReviewer
from vevo.memory import LearningQueue, MemoryStore


def _print(obj: Any) -> None:
    print(json.dumps(obj, indent=2, default=str))


def _stores(config: Config) -> tuple[MemoryStore, LearningQueue, AuditLog]:
    memory = MemoryStore(config.data_dir / "memory.json").load()
    queue = LearningQueue(config.data_dir / "learning_queue.json").load()
    return memory, queue, AuditLog(config.logs_dir / "errors.jsonl")


def cmd_serve(args: argparse.Namespace) -> None:
    from vevo.server import main as serve

    serve()


def cmd_chat(args: argparse.Namespace) -> None:
    config = get_config()
    memory, queue, error_log = _stores(config)
    service = ChatService.from_config(config, memory, queue, error_log)
    response = asyncio.run(service.handle_chat(args.message))
    _print(response.to_dict())


def cmd_self_edit(args: argparse.Namespace) -> None:
    from vevo.self_edit import SelfEditPipeline

    config = get_config()
    if is_protected(args.path, config.protected_patterns):
        _print({"success": False, "error": "Editing critical files is not allowed."})
        sys.exit(2)
    pipeline = SelfEditPipeline.from_config(config, AuditLog(config.logs_dir / "errors.jsonl"))
    result = asyncio.run(pipeline.run(args.path, args.feedback))
    _print(result.to_dict())
    if not result.ok:
        sys.exit(1)


def cmd_review(args: argparse.Namespace) -> None:
    config = get_config()
    memory, _, error_log = _stores(config)
    reviewer = LearningReviewer.from_config(config, memory, error_log)
    _print({"result": asyncio.run(reviewer.review())})


def cmd_status(args: argparse.Namespace) -> None:
    config = get_config()
    memory, queue, _ = _stores(config)
    reviewer = LearningReviewer.from_config(config, memory)
    _print({
        "data_dir": str(config.data_dir),
        "providers": config.enabled_providers,
        "memory": len(memory),
        "learning_queue": len(queue.pending()),
        **reviewer.status(),
    })


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vevo")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Run the HTTP server")

    chat = sub.add_parser("chat", help="Send one chat message")
    chat.add_argument("message")

    self_edit = sub.add_parser("self-edit", help="Request a validated rewrite of a file")
    self_edit.add_argument("path")
    self_edit.add_argument("--feedback", default="improve readability")

    sub.add_parser("review", help="Run a learning review now")
    sub.add_parser("status")
    return parser


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.command == "serve":
        cmd_serve(args)
    elif args.command == "chat":
        cmd_chat(args)
    elif args.command == "self-edit":
        cmd_self_edit(args)
    elif args.command == "review":
        cmd_review(args)
    elif args.command == "status":
        cmd_status(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
