"""
``calculate`` operation.

Expressions are parsed with SymPy using calculator conventions, so ``5!``,
``2^16``, ``3x`` and ``sin(30 degrees)`` all work. Nothing is passed to
``eval``.
"""

import logging
import re

from sympy import N
from sympy.parsing.sympy_parser import (
    convert_xor,
    factorial_notation,
    implicit_multiplication_application,
    parse_expr,
    standard_transformations,
)

from .context import OperationContext
from .registry import OperationRegistry

logger = logging.getLogger(__name__)

CALCULATOR_SYNTAX = standard_transformations + (
    implicit_multiplication_application,
    convert_xor,
    factorial_notation,
)

_DEGREES = re.compile(r"(\d+(?:\.\d+)?)\s*(?:degrees?|deg)\b", re.IGNORECASE)
_CEIL = re.compile(r"\bceil\b")


def preprocess_expression(expression: str) -> str:
    """Rewrite degree notation to radians and ``ceil`` to SymPy's ``ceiling``."""
    return _CEIL.sub("ceiling", _DEGREES.sub(r"(\1 * pi / 180)", expression))


def _evaluate(expression: str):
    value = complex(
        N(parse_expr(preprocess_expression(expression), transformations=CALCULATOR_SYNTAX))
    )
    if value.imag:
        return str(value)
    real = value.real
    return int(real) if real.is_integer() else real


def calculate(expression: str) -> dict:
    """
    Evaluate ``expression`` to a number.

    Returns ``{"expression", "result", "summary"}``, or ``{"expression", "error"}``
    when the input is empty, malformed or does not reduce to a number (for
    example because it has free symbols).
    """
    outcome = {"expression": expression}
    if not (expression or "").strip():
        outcome["error"] = 'Expression is empty. Provide arguments like {"expression": "2+2"}'
        return outcome

    try:
        result = _evaluate(expression)
    except SyntaxError as e:
        outcome["error"] = f"Could not parse expression: {e}"
    except TypeError:
        outcome["error"] = "Expression does not evaluate to a number"
    except Exception as e:
        outcome["error"] = f"Calculation error: {e}"
    else:
        outcome["result"] = result
        outcome["summary"] = f"{expression} = {result}"
        return outcome

    logger.debug(f"calculate({expression!r}) failed: {outcome['error']}")
    return outcome


async def _handle_calculate(args: dict, context: OperationContext) -> dict:
    return calculate(str(args.get("expression", "")))


OperationRegistry.register(
    name="calculate",
    description="Evaluate a math expression (arithmetic, powers, factorials, trig, roots)",
    parameters={"expression": "expression to evaluate, e.g. 2^10 or sqrt(16)"},
    handler=_handle_calculate,
    required=["expression"],
)
