"""Shared fixtures for obench tests."""

from __future__ import annotations

import asyncio
import io
import shlex
import sys
import textwrap
from pathlib import Path
from typing import List, Optional

import pytest
from rich.console import Console

from obench.config import BenchmarkConfig, OllamaConfig
from obench.ollama_runner import RunResult


FAKE_OLLAMA = textwrap.dedent(
    '''
    import os
    import sys

    args = sys.argv[1:]
    if args and args[0] == "list":
        print("NAME               ID              SIZE      MODIFIED")
        print("llama3.2:3b        a80c4f17acd5    2.0 GB    2 days ago")
        sys.exit(0)

    env_file = os.environ.get("FAKE_OLLAMA_ENV_FILE")
    if env_file:
        with open(env_file, "w") as f:
            for name in sorted(os.environ):
                if name.startswith("OLLAMA_"):
                    f.write(f"{name}={os.environ[name]}\\n")

    mode = os.environ.get("FAKE_OLLAMA_MODE", "ok")
    rate = os.environ.get("FAKE_OLLAMA_RATE", "42.17")

    if mode == "fail":
        sys.stderr.write("Error: model 'nope' not found, try pulling it first\\n")
        sys.exit(1)

    print("The sky is blue because of Rayleigh scattering.")
    sys.stderr.write("total duration:       1.503s\\n")
    sys.stderr.write("prompt eval count:    31 token(s)\\n")
    sys.stderr.write("prompt eval rate:     812.50 tokens/s\\n")
    sys.stderr.write("eval count:           64 token(s)\\n")
    if mode != "missing":
        sys.stderr.write(f"eval rate:            {rate} tokens/s\\n")
    '''
)


@pytest.fixture
def fake_ollama_bin(tmp_path: Path) -> str:
    """An `--ollama-bin` command running a stand-in for the ollama CLI."""
    script = tmp_path / "fake_ollama.py"
    script.write_text(FAKE_OLLAMA)
    return f"{shlex.quote(sys.executable)} {shlex.quote(str(script))}"


@pytest.fixture
def report_console():
    """Console writing to an in-memory buffer, wide enough to never wrap."""
    buffer = io.StringIO()
    return Console(file=buffer, width=200), buffer


@pytest.fixture
def make_config():
    def _make(**overrides) -> BenchmarkConfig:
        values = dict(
            model="llama3.2:3b",
            serial_count=3,
            parallel_count=2,
            ollama=OllamaConfig(),
        )
        values.update(overrides)
        return BenchmarkConfig(**values)

    return _make


class StubRunner:
    """Stands in for OllamaRunner with canned eval rates per launch index.

    ``delays`` lets a test make later launches finish first.
    A rate of None produces a failed run.
    """

    def __init__(self, rates: List[Optional[float]], delays: Optional[List[float]] = None):
        self.rates = rates
        self.delays = delays or [0.0] * len(rates)
        self.started: List[int] = []
        self.completed: List[int] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def run_once(self, index: int) -> RunResult:
        self.started.append(index)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays[index - 1])
        finally:
            self.in_flight -= 1
        self.completed.append(index)

        rate = self.rates[index - 1]
        if rate is None:
            return RunResult(
                index=index,
                success=False,
                elapsed=0.0,
                error_message="no line starting with 'eval rate:' in output",
            )
        return RunResult(
            index=index,
            success=True,
            elapsed=0.0,
            eval_rate=rate,
            raw_line=f"eval rate:            {rate:.2f} tokens/s",
        )


@pytest.fixture
def stub_runner_factory():
    return StubRunner
