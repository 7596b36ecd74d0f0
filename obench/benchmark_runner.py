#!/usr/bin/env python3
"""
Benchmark Runner - Main orchestrator for benchmarking Ollama models
Runs the same prompt serially and then in parallel, reporting the eval
rate (tokens/second) of every run and the average per phase.
"""

import asyncio
import argparse
import logging
import subprocess
import sys
import time
from typing import List, Optional, Tuple

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.prompt import IntPrompt, Prompt
from tqdm import tqdm

from .config import (
    DEFAULT_MODEL,
    DEFAULT_OLLAMA_BIN,
    DEFAULT_PROMPT,
    DEFAULT_SERIAL_COUNT,
    BenchmarkConfig,
    OllamaConfig,
    apply_config_file,
    load_config_file,
    persist_session_env,
)
from .ollama_runner import (
    OllamaNotFoundError,
    OllamaRunner,
    PhaseSummary,
    RunResult,
    list_models,
    resolve_ollama_bin,
    summarize_phase,
)
from .report import PlainReporter, console, get_reporter

logger = logging.getLogger("obench.benchmark_runner")


class BenchmarkOrchestrator:
    """
    Runs the serial and parallel phases against one model
    """

    def __init__(
        self,
        config: BenchmarkConfig,
        runner: Optional[OllamaRunner] = None,
        reporter: Optional[PlainReporter] = None
    ):
        self.config = config
        self.runner = runner or OllamaRunner(
            ollama_bin=config.ollama_bin,
            model=config.model,
            prompt=config.prompt,
            ollama_config=config.ollama
        )
        self.reporter = reporter or get_reporter(config.markdown)

    @staticmethod
    def _check_count(n: int) -> None:
        if n < 1:
            raise ValueError(f"run count must be at least 1, got {n}")

    async def run_serial(self, n: int) -> PhaseSummary:
        """Run the prompt n times, each run waiting for the previous one"""
        self._check_count(n)
        self.reporter.print_phase_header("serial", n)

        results: List[RunResult] = []
        start_time = time.perf_counter()

        for index in range(1, n + 1):
            result = await self.runner.run_once(index)
            results.append(result)
            self.reporter.print_run(result)

        elapsed = time.perf_counter() - start_time

        summary = summarize_phase("serial", results, elapsed)
        self.reporter.print_summary(summary)
        return summary

    async def run_parallel(self, n: int) -> PhaseSummary:
        """Launch n runs at once, wait for all of them, report in launch order"""
        self._check_count(n)
        self.reporter.print_phase_header("parallel", n)

        start_time = time.perf_counter()

        tasks = [
            asyncio.create_task(self.runner.run_once(index))
            for index in range(1, n + 1)
        ]

        # Progress bar goes to stderr and stays off when it is not a terminal
        with tqdm(total=n, desc="Parallel requests", disable=None, leave=False) as pbar:
            for task in tasks:
                task.add_done_callback(lambda _: pbar.update(1))
            results = await asyncio.gather(*tasks)

        elapsed = time.perf_counter() - start_time

        for result in results:
            self.reporter.print_run(result)

        summary = summarize_phase("parallel", list(results), elapsed)
        self.reporter.print_summary(summary)
        return summary

    async def run(self) -> Tuple[PhaseSummary, PhaseSummary]:
        """Full session: configuration block, serial phase, parallel phase"""
        self.reporter.print_config(self.config)
        serial = await self.run_serial(self.config.serial_count)
        parallel = await self.run_parallel(self.config.parallel_count)
        return serial, parallel


class BenchmarkArgumentParser(argparse.ArgumentParser):
    """Usage errors print the full help and exit 1"""

    def error(self, message):
        self.print_help(sys.stderr)
        self.exit(1, f"\n{self.prog}: error: {message}\n")


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = BenchmarkArgumentParser(
        prog="obench",
        description="Benchmark Ollama models by eval rate (tokens/second)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Quick run with the default small model
  obench --default --pcount 4

  # Markdown output for a specific model
  obench -m llama3.2 -c 5 -pc 4 --markdown

  # Ollama running inside Docker
  obench --ollama-bin "docker exec -i ollama ollama" -m llama3.2 -c 3 -pc 2
        """
    )

    parser.add_argument(
        "--default", "-d",
        action="store_true",
        help=f"Run a benchmark using a default small model ({DEFAULT_MODEL}, {DEFAULT_SERIAL_COUNT} runs)"
    )

    parser.add_argument(
        "--model", "-m",
        type=str,
        help="Model to benchmark"
    )

    parser.add_argument(
        "--count", "-c",
        type=positive_int,
        help="Number of times to run the serial benchmark"
    )

    parser.add_argument(
        "--pcount", "-pc",
        type=positive_int,
        help="Number of requests to run in the parallel benchmark"
    )

    parser.add_argument(
        "--load", "-l",
        type=positive_int,
        help="Max number of models to load (OLLAMA_MAX_LOADED_MODELS)"
    )

    parser.add_argument(
        "--parallel", "-p",
        type=positive_int,
        help="Max number of parallel requests to a model (OLLAMA_NUM_PARALLEL)"
    )

    parser.add_argument(
        "--ctxsize", "-s",
        type=positive_int,
        help="Context size (OLLAMA_CONTEXT_LENGTH, 2048 default)"
    )

    parser.add_argument(
        "--qsize", "-q",
        type=positive_int,
        help="Queue size (OLLAMA_MAX_QUEUE, 512 default)"
    )

    parser.add_argument(
        "--ollama-bin",
        type=str,
        help="Ollama executable or command (e.g. if using Docker)"
    )

    parser.add_argument(
        "--markdown",
        action="store_true",
        help="Format output as markdown"
    )

    parser.add_argument(
        "--prompt",
        type=str,
        help=f"Prompt to send (default: {DEFAULT_PROMPT!r})"
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to a JSON workload file"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Log every command launched"
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> BenchmarkConfig:
    """Flags first, then the --default preset, then the workload file"""
    config = BenchmarkConfig(
        model=args.model,
        serial_count=args.count,
        parallel_count=args.pcount,
        prompt=args.prompt or DEFAULT_PROMPT,
        markdown=args.markdown,
        ollama_bin=args.ollama_bin or DEFAULT_OLLAMA_BIN,
        ollama=OllamaConfig(
            max_loaded_models=args.load,
            num_parallel=args.parallel,
            context_length=args.ctxsize,
            max_queue=args.qsize
        )
    )

    if args.default:
        if config.serial_count is None:
            config.serial_count = DEFAULT_SERIAL_COUNT
        if config.model is None:
            config.model = DEFAULT_MODEL

    if args.config:
        apply_config_file(config, load_config_file(args.config))

    return config


def _ask_count(question: str, prompt_console: Console) -> int:
    while True:
        value = IntPrompt.ask(question, console=prompt_console)
        if value >= 1:
            return value
        prompt_console.print("[prompt.invalid]Please enter a number of at least 1")


def _ask_optional(question: str, prompt_console: Console) -> Optional[int]:
    while True:
        value = IntPrompt.ask(question, default=None, show_default=False, console=prompt_console)
        if value is None or value >= 1:
            return value
        prompt_console.print("[prompt.invalid]Please enter a number of at least 1, or leave blank")


def collect_missing(config: BenchmarkConfig, prompt_console: Console = console) -> BenchmarkConfig:
    """Ask for whatever the flags and workload file left unset"""
    if config.serial_count is None:
        config.serial_count = _ask_count("How many times to run the serial benchmark?", prompt_console)

    if config.parallel_count is None:
        config.parallel_count = _ask_count("How many requests to run on the parallel benchmark?", prompt_console)

    if config.model is None:
        prompt_console.print("Current models available locally\n")
        prompt_console.print(list_models(config.ollama_bin), markup=False, highlight=False)
        while not config.model:
            config.model = Prompt.ask("Enter model you'd like to run (e.g. llama3.2)", console=prompt_console).strip()

    ollama = config.ollama
    if ollama.max_loaded_models is None:
        prompt_console.print(
            "The maximum number of models that can be loaded concurrently provided they fit in available memory.\n"
            "The default is 3 * the number of GPUs or 3 for CPU inference."
        )
        ollama.max_loaded_models = _ask_optional("Max loaded models", prompt_console)

    if ollama.num_parallel is None:
        prompt_console.print(
            "The maximum number of parallel requests each model will process at the same time.\n"
            "(The default will auto-select either 4 or 1 based on available memory.)"
        )
        ollama.num_parallel = _ask_optional("Max parallel requests", prompt_console)

    if ollama.context_length is None:
        prompt_console.print("Context size. Default 2048.")
        ollama.context_length = _ask_optional("Context size", prompt_console)

    if ollama.max_queue is None:
        prompt_console.print(
            "The maximum number of requests Ollama will queue when busy before rejecting additional requests.\n"
            "The default is 512"
        )
        ollama.max_queue = _ask_optional("Queue size", prompt_console)

    return config


def setup_logging(debug: bool = False) -> None:
    """Diagnostics go to stderr so they never mix into the report"""
    package_logger = logging.getLogger("obench")
    package_logger.handlers.clear()
    handler = RichHandler(console=Console(stderr=True), show_path=False, log_time_format="[%X]")
    handler.setFormatter(logging.Formatter("%(message)s"))
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG if debug else logging.WARNING)


def main(argv: Optional[List[str]] = None):
    args = parse_args(argv)
    setup_logging(args.debug)

    try:
        config = build_config(args)
    except (OSError, ValueError) as e:
        console.print(f"[red]Error: could not load workload file: {escape(str(e))}[/red]", soft_wrap=True, highlight=False)
        sys.exit(1)

    # Fail on a missing ollama before asking anything
    try:
        resolve_ollama_bin(config.ollama_bin)
    except OllamaNotFoundError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]", soft_wrap=True, highlight=False)
        sys.exit(1)

    collect_missing(config)

    try:
        persist_session_env(config.ollama)
    except (OSError, subprocess.CalledProcessError) as e:
        logger.warning("Could not persist Ollama settings with launchctl: %s", e)

    orchestrator = BenchmarkOrchestrator(config)
    asyncio.run(orchestrator.run())


if __name__ == "__main__":
    main()
