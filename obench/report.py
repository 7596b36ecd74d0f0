"""
Result reporting
Plain-text and markdown-table renderings of a benchmark session
"""

from typing import Optional

from rich.console import Console

from .config import BenchmarkConfig
from .ollama_runner import PhaseSummary, RunResult

console = Console()

PHASE_TITLES = {
    "serial": "Serial",
    "parallel": "Parallel",
}


def format_rate(value: Optional[float]) -> str:
    return "N/A" if value is None else f"{value:.2f}"


class PlainReporter:
    """Human readable lines, one per run"""

    def __init__(self, output: Optional[Console] = None):
        self.console = output or console

    def emit(self, text: str = "") -> None:
        # Ollama output may contain brackets; never treat it as rich markup
        self.console.print(text, markup=False, highlight=False, soft_wrap=True)

    def print_config(self, config: BenchmarkConfig) -> None:
        self.emit(f"Running benchmark {config.serial_count} times using model: {config.model}")
        self.emit()
        self.emit("Ollama Configuration:")
        self.emit("|---------------------------------|")
        for label, value in config.ollama.display_values().items():
            self.emit(f"{label:<18}: {value}")
        self.emit("|---------------------------------|")
        self.emit()

    def print_phase_header(self, phase: str, count: int) -> None:
        if phase == "parallel":
            self.emit(f"Parallel Execution: Using {count} parallel requests.")
        else:
            self.emit(f"{PHASE_TITLES.get(phase, phase.title())} Execution:")
        self.emit()
        self.print_table_header()

    def print_table_header(self) -> None:
        pass

    def print_run(self, result: RunResult) -> None:
        if result.success:
            self.emit(result.raw_line)
        else:
            self.emit(f"Run {result.index} failed: {result.error_message}")

    def print_average(self, summary: PhaseSummary) -> None:
        self.emit(f"Average Eval Rate: {format_rate(summary.average_eval_rate)} tokens/second")

    def print_summary(self, summary: PhaseSummary) -> None:
        self.print_average(summary)
        title = PHASE_TITLES.get(summary.phase, summary.phase.title())
        self.emit(f"{title} Elapsed Time: {summary.elapsed:.2f} seconds")
        self.emit()


class MarkdownReporter(PlainReporter):
    """Two-column markdown table per phase"""

    def print_table_header(self) -> None:
        self.emit("| Run | Eval Rate (Tokens/Second) |")
        self.emit("|-----|-----------------------------|")

    def print_run(self, result: RunResult) -> None:
        if result.success:
            self.emit(f"| {result.index} | {result.eval_rate:.2f} tokens/s |")
        else:
            self.emit(f"| {result.index} | failed: {result.error_message} |")

    def print_average(self, summary: PhaseSummary) -> None:
        self.emit(f"|**Average Eval Rate**| {format_rate(summary.average_eval_rate)} tokens/second |")


def get_reporter(markdown: bool = False, output: Optional[Console] = None) -> PlainReporter:
    if markdown:
        return MarkdownReporter(output)
    return PlainReporter(output)
