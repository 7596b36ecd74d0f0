"""
obench - Ollama eval rate benchmark
Runs a prompt against an Ollama model serially and in parallel and
reports the tokens/second of each run

Modules:
    - config: Workload and Ollama server settings
    - parse_results: Eval rate parser for `ollama run --verbose` output
    - ollama_runner: Async subprocess runner for the ollama CLI
    - report: Plain and markdown result reporting
    - benchmark_runner: Main orchestrator and command line interface
"""

__version__ = "1.0.0"

from .config import BenchmarkConfig, OllamaConfig
from .parse_results import EvalRateNotFoundError, parse_eval_rate
from .ollama_runner import OllamaNotFoundError, OllamaRunner, PhaseSummary, RunResult
from .benchmark_runner import BenchmarkOrchestrator

__all__ = [
    "BenchmarkConfig",
    "OllamaConfig",
    "EvalRateNotFoundError",
    "parse_eval_rate",
    "OllamaNotFoundError",
    "OllamaRunner",
    "PhaseSummary",
    "RunResult",
    "BenchmarkOrchestrator"
]
