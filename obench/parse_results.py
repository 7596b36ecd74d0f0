"""
Eval rate parser
Extracts the tokens/second figure from `ollama run --verbose` diagnostics
"""

import math
from dataclasses import dataclass

EVAL_RATE_LABEL = "eval rate:"


class EvalRateNotFoundError(ValueError):
    """The diagnostic output carried no usable eval rate line"""


@dataclass(frozen=True)
class EvalRate:
    value: float  # Tokens per second
    line: str     # The matched diagnostic line, as printed by Ollama


def find_eval_rate_line(output: str) -> str:
    for line in output.splitlines():
        if line.startswith(EVAL_RATE_LABEL):
            return line.rstrip()
    raise EvalRateNotFoundError(f"no line starting with '{EVAL_RATE_LABEL}' in output")


def parse_eval_rate(output: str) -> EvalRate:
    """
    Parse the eval rate out of the verbose stats Ollama writes to stderr, e.g.

        eval rate:            42.17 tokens/s

    The value is the third whitespace-separated field of the first line
    starting with ``eval rate:``.
    """
    line = find_eval_rate_line(output)
    fields = line.split()
    if len(fields) < 3:
        raise EvalRateNotFoundError(f"eval rate line has no value: {line!r}")

    try:
        value = float(fields[2])
    except ValueError:
        raise EvalRateNotFoundError(f"eval rate is not a number: {fields[2]!r}") from None
    if not math.isfinite(value):
        raise EvalRateNotFoundError(f"eval rate is not a number: {fields[2]!r}")

    return EvalRate(value=value, line=line)
