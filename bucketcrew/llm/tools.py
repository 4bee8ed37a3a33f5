from __future__ import annotations

import ast
import logging
import operator
from typing import Optional

logger = logging.getLogger(__name__)

_BINARY_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_UNARY_OPS = {ast.UAdd: operator.pos, ast.USub: operator.neg}
_MAX_EXPONENT = 100


def _evaluate(node: ast.AST) -> float:
    if isinstance(node, ast.Expression):
        return _evaluate(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
        left = _evaluate(node.left)
        right = _evaluate(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > _MAX_EXPONENT:
            raise ValueError("exponent too large")
        return _BINARY_OPS[type(node.op)](left, right)
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_evaluate(node.operand))
    raise ValueError(f"unsupported expression element: {type(node).__name__}")


def evaluate_expression(expression: str) -> float:
    """Evaluate an arithmetic expression without executing arbitrary code."""
    cleaned = expression.replace(",", "").strip()
    return _evaluate(ast.parse(cleaned, mode="eval"))


def _format_number(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def calculator(expression: str, label: str) -> str:
    """Perform arithmetic calculations.

    Use this for computing margins, growth rates, ratios, percentages,
    projections, and other numerical analysis.

    Args:
        expression: Arithmetic expression, e.g. "(150000 - 120000) / 150000 * 100".
        label: Human-readable label for what the calculation represents.
    """
    try:
        formatted = _format_number(evaluate_expression(expression))
    except (SyntaxError, ValueError, ZeroDivisionError, OverflowError, RecursionError) as e:
        logger.debug(f"Calculator rejected {expression!r}: {e}")
        return f'Error: could not evaluate "{expression}"'
    return f"{label}: {expression} = {formatted}"


def analyze_document_section(query: str, document_name: Optional[str] = None) -> str:
    """Request a focused re-read of a specific section of the business documents.

    Use when you need to drill deeper into a topic, verify a data point, or
    cross-reference information across documents.

    Args:
        query: What specific information you are looking for.
        document_name: Optional document to focus on.
    """
    where = f" in {document_name}" if document_name else ""
    return (
        f'Focused analysis requested: "{query}"{where}. Please analyze the relevant '
        "sections from the documents provided above and continue your research."
    )


ANALYSIS_TOOLS = [calculator, analyze_document_section]
