"""Centralized config loading — read once at import time."""

import os
from pathlib import Path

import yaml
from dotenv import load_dotenv

# Load .env from project root (parent of gategen/)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

CONFIG_PATH = Path(__file__).resolve().parent / "config.yaml"

_config = yaml.safe_load(CONFIG_PATH.read_text())

# Environment overrides for the container-side settings
if os.getenv("GATEGEN_CONTAINER_IMAGE"):
    _config["container_image"] = os.environ["GATEGEN_CONTAINER_IMAGE"]
if os.getenv("GATEGEN_GATE_TIMEOUT", "").isdigit():
    _config["gate_timeout_seconds"] = int(os.environ["GATEGEN_GATE_TIMEOUT"])


def get_config() -> dict:
    """Return the loaded config dictionary."""
    return _config


def run_option(run_config: dict | None, key: str, default=None):
    """Read a per-run collaborator (generator, gate_backend, cancel_event, ...) from a graph run config."""
    if not run_config:
        return default
    return run_config.get("configurable", {}).get(key, default)
