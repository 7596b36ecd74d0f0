#!/usr/bin/env python3
"""
Ollama Runner - drives the `ollama` CLI for benchmarking
Each run is one `ollama run <model> --verbose <prompt>` subprocess whose
verbose stats are scraped for the eval rate.
"""

import asyncio
import logging
import os
import shlex
import shutil
import subprocess
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .config import OllamaConfig
from .parse_results import EvalRateNotFoundError, parse_eval_rate

logger = logging.getLogger("obench.ollama_runner")


class OllamaNotFoundError(RuntimeError):
    """The configured ollama executable does not resolve"""

    def __init__(self, command: str):
        super().__init__(f"{command} could not be found. Please check the path or install it.")
        self.command = command


@dataclass
class RunResult:
    """Result of a single `ollama run` invocation"""
    index: int  # 1-based launch order
    success: bool
    elapsed: float  # Seconds, wall clock
    eval_rate: Optional[float] = None  # Tokens per second
    raw_line: Optional[str] = None
    error_message: Optional[str] = None


@dataclass
class PhaseSummary:
    """Aggregated results of one benchmark phase"""
    phase: str
    total_runs: int
    successful_runs: int
    failed_runs: int
    total_eval_rate: float
    average_eval_rate: Optional[float]
    elapsed: float
    results: List[RunResult] = field(default_factory=list)


def summarize_phase(phase: str, results: List[RunResult], elapsed: float) -> PhaseSummary:
    """Average the eval rate over the runs that produced one"""
    successful = [r for r in results if r.success]
    total_eval_rate = sum(r.eval_rate for r in successful)
    average_eval_rate = total_eval_rate / len(successful) if successful else None

    return PhaseSummary(
        phase=phase,
        total_runs=len(results),
        successful_runs=len(successful),
        failed_runs=len(results) - len(successful),
        total_eval_rate=total_eval_rate,
        average_eval_rate=average_eval_rate,
        elapsed=max(elapsed, 0.0),
        results=sorted(results, key=lambda r: r.index),
    )


def split_command(ollama_bin: str) -> List[str]:
    """`--ollama-bin` may be a whole command, e.g. `docker exec -it ollama ollama`"""
    try:
        parts = shlex.split(ollama_bin)
    except ValueError:
        raise OllamaNotFoundError(ollama_bin) from None
    if not parts:
        raise OllamaNotFoundError(ollama_bin)
    return parts


def resolve_ollama_bin(ollama_bin: str) -> List[str]:
    """Split the command and make sure its first word resolves to an executable"""
    parts = split_command(ollama_bin)
    if shutil.which(parts[0]) is None:
        raise OllamaNotFoundError(parts[0])
    return parts


def list_models(ollama_bin: str) -> str:
    """Output of `ollama list`"""
    result = subprocess.run(
        split_command(ollama_bin) + ["list"],
        capture_output=True,
        text=True,
    )
    if result.returncode != 0:
        logger.warning("'%s list' exited with %d: %s", ollama_bin, result.returncode, result.stderr.strip())
    return result.stdout


def _last_line(text: str) -> str:
    lines = [line for line in text.splitlines() if line.strip()]
    return lines[-1].strip() if lines else ""


class OllamaRunner:
    """Runs the benchmark prompt against one model through the ollama CLI"""

    def __init__(
        self,
        ollama_bin: str = "ollama",
        model: str = "llama3.2:3b",
        prompt: str = "Why is the blue sky blue?",
        ollama_config: Optional[OllamaConfig] = None
    ):
        self.command = split_command(ollama_bin)
        self.model = model
        self.prompt = prompt
        self.ollama_config = ollama_config or OllamaConfig()

    def build_command(self) -> List[str]:
        return self.command + ["run", self.model, "--verbose", self.prompt]

    def build_env(self) -> Dict[str, str]:
        """Child environment: ours plus the OLLAMA_* knobs"""
        env = dict(os.environ)
        env.update(self.ollama_config.to_env())
        return env

    async def run_once(self, index: int) -> RunResult:
        """Execute one invocation and extract its eval rate"""
        cmd = self.build_command()
        logger.debug("run %d: %s", index, shlex.join(cmd))

        start_time = time.perf_counter()

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
                env=self.build_env(),
            )
            _, stderr = await process.communicate()
        except (OSError, ValueError) as e:
            return RunResult(
                index=index,
                success=False,
                elapsed=time.perf_counter() - start_time,
                error_message=str(e)
            )

        elapsed = time.perf_counter() - start_time
        output = stderr.decode("utf-8", errors="replace")
        logger.debug("run %d: exit code %d after %.2fs", index, process.returncode, elapsed)

        if process.returncode != 0:
            reason = _last_line(output) or "no output"
            return RunResult(
                index=index,
                success=False,
                elapsed=elapsed,
                error_message=f"exited with {process.returncode}: {reason}"
            )

        try:
            eval_rate = parse_eval_rate(output)
        except EvalRateNotFoundError as e:
            return RunResult(
                index=index,
                success=False,
                elapsed=elapsed,
                error_message=str(e)
            )

        return RunResult(
            index=index,
            success=True,
            elapsed=elapsed,
            eval_rate=eval_rate.value,
            raw_line=eval_rate.line
        )
