"""
Benchmark configuration
Workload settings and Ollama server tuning knobs, plus the translation of
those knobs into the environment variables Ollama reads.
"""

import json
import logging
import subprocess
import sys
from dataclasses import dataclass, field
from typing import Dict, Optional

logger = logging.getLogger("obench.config")

DEFAULT_PROMPT = "Why is the blue sky blue?"
DEFAULT_OLLAMA_BIN = "ollama"

# Preset used by --default
DEFAULT_MODEL = "llama3.2:3b"
DEFAULT_SERIAL_COUNT = 3

# Values Ollama falls back to when the knob is left unset
DEFAULT_CONTEXT_LENGTH = 2048
DEFAULT_MAX_QUEUE = 512


@dataclass
class OllamaConfig:
    """Server-side limits passed to Ollama through its environment"""
    max_loaded_models: Optional[int] = None
    num_parallel: Optional[int] = None
    context_length: Optional[int] = None
    max_queue: Optional[int] = None

    ENV_NAMES = {
        "max_loaded_models": "OLLAMA_MAX_LOADED_MODELS",
        "num_parallel": "OLLAMA_NUM_PARALLEL",
        "context_length": "OLLAMA_CONTEXT_LENGTH",
        "max_queue": "OLLAMA_MAX_QUEUE",
    }

    def to_env(self) -> Dict[str, str]:
        """Only the knobs that were actually set"""
        env = {}
        for attr, name in self.ENV_NAMES.items():
            value = getattr(self, attr)
            if value is not None:
                env[name] = str(value)
        return env

    def display_values(self) -> Dict[str, str]:
        """Values as shown in the configuration block, with Ollama's defaults filled in"""
        context_length = self.context_length if self.context_length is not None else DEFAULT_CONTEXT_LENGTH
        max_queue = self.max_queue if self.max_queue is not None else DEFAULT_MAX_QUEUE
        return {
            "Max Loaded Models": "" if self.max_loaded_models is None else str(self.max_loaded_models),
            "Max Num Parallel": "" if self.num_parallel is None else str(self.num_parallel),
            "Max Request Queue": str(max_queue),
            "Context Size": str(context_length),
        }


@dataclass
class BenchmarkConfig:
    """Everything one benchmark session needs"""
    model: Optional[str] = None
    serial_count: Optional[int] = None
    parallel_count: Optional[int] = None
    prompt: str = DEFAULT_PROMPT
    markdown: bool = False
    ollama_bin: str = DEFAULT_OLLAMA_BIN
    ollama: OllamaConfig = field(default_factory=OllamaConfig)


def load_config_file(config_path: str) -> Dict:
    """Load a JSON workload file"""
    with open(config_path, 'r') as f:
        config = json.load(f)
    if not isinstance(config, dict):
        raise ValueError(f"Workload file {config_path} must contain a JSON object")
    return config


def _check_positive_int(name: str, value) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < 1:
        raise ValueError(f"{name} must be a whole number of at least 1, got {value!r}")
    return value


def _check_text(name: str, value) -> str:
    # Passed on the ollama command line, which cannot carry NUL bytes
    if not isinstance(value, str) or "\x00" in value:
        raise ValueError(f"{name} must be a string without NUL bytes, got {value!r}")
    return value


def apply_config_file(config: BenchmarkConfig, file_config: Dict) -> BenchmarkConfig:
    """
    Fill the fields still unset on ``config`` from a loaded workload file.
    Values already set (from flags or the --default preset) win.
    """
    if config.model is None:
        config.model = file_config.get("model")
    if config.serial_count is None:
        config.serial_count = file_config.get("count")
    if config.parallel_count is None:
        config.parallel_count = file_config.get("pcount")
    if config.prompt == DEFAULT_PROMPT:
        config.prompt = file_config.get("prompt", DEFAULT_PROMPT)
    if not config.markdown:
        config.markdown = bool(file_config.get("markdown", False))
    if config.ollama_bin == DEFAULT_OLLAMA_BIN:
        config.ollama_bin = file_config.get("ollama_bin", DEFAULT_OLLAMA_BIN)

    if config.model is not None:
        _check_text("model", config.model)
    _check_text("prompt", config.prompt)
    _check_text("ollama_bin", config.ollama_bin)

    for name, value in (("count", config.serial_count), ("pcount", config.parallel_count)):
        if value is not None:
            _check_positive_int(name, value)

    server = file_config.get("ollama", {})
    if not isinstance(server, dict):
        raise ValueError(f"ollama must be a JSON object, got {server!r}")
    for attr in OllamaConfig.ENV_NAMES:
        if getattr(config.ollama, attr) is None and server.get(attr) is not None:
            setattr(config.ollama, attr, _check_positive_int(f"ollama.{attr}", server[attr]))

    return config


def persist_session_env(ollama_config: OllamaConfig, platform: str = sys.platform) -> bool:
    """
    On macOS the Ollama app reads its settings from the launchd session,
    so set values are also pushed there with ``launchctl setenv``.
    Returns True when anything was persisted.
    """
    if not platform.startswith("darwin"):
        return False

    env = ollama_config.to_env()
    for name, value in env.items():
        logger.debug("launchctl setenv %s %s", name, value)
        subprocess.run(["launchctl", "setenv", name, value], check=True)
    return bool(env)
