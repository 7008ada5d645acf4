"""Local arithmetic shortcut for messages that are plain expressions."""
from __future__ import annotations

import ast
import operator
import re
from typing import Any, Callable, Dict, Optional, Union

Number = Union[int, float]

EXPRESSION_PATTERN = re.compile(r"^[\d\s+\-*/().]+$")

_OPERATORS: Dict[type, Callable[..., Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}


def looks_like_expression(text: str) -> bool:
    text = (text or "").strip()
    return bool(text) and bool(EXPRESSION_PATTERN.match(text)) and any(ch.isdigit() for ch in text)


def _eval_node(node: ast.AST) -> Number:
    if isinstance(node, ast.Expression):
        return _eval_node(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _OPERATORS:
        return _OPERATORS[type(node.op)](_eval_node(node.left), _eval_node(node.right))
    if isinstance(node, ast.UnaryOp) and type(node.op) in _OPERATORS:
        return _OPERATORS[type(node.op)](_eval_node(node.operand))
    raise ValueError(f"unsupported expression element: {type(node).__name__}")


def compute(text: str) -> Optional[Number]:
    """Evaluate ``text`` if it is a plain arithmetic expression, else ``None``."""
    if not looks_like_expression(text):
        return None
    try:
        result = _eval_node(ast.parse(text.strip(), mode="eval"))
    except (SyntaxError, ValueError, ZeroDivisionError, OverflowError, RecursionError):
        return None
    if isinstance(result, float) and result.is_integer():
        return int(result)
    return result


def format_result(value: Number) -> str:
    return f"Math result: {value}"
