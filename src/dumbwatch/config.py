"""Configuration management for dumbwatch."""

import copy
import os
from pathlib import Path
from typing import Any

import yaml


DEFAULT_CONFIG = {
    "storage_backend": "tinybird",
    "tinybird": {
        "base_url": "https://api.tinybird.co",
        "events_datasource": "llm_events",
        "clusters_datasource": "report_clusters",
    },
    "bigquery": {
        "project": None,
        "dataset": "dumbwatch",
        "events_table": "llm_events",
        "clusters_table": "report_clusters",
    },
    "store": {"timeout_seconds": 10.0},
    "embedding_model": "sentence-transformers/all-MiniLM-L6-v2",
    "clustering": {
        "threshold": 0.7,
        "window_hours": 24,
        "max_records": 1000,
        "min_text_length": 10,
        "max_representative_texts": 5,
        "min_cluster_size": 2,
    },
    "schedule": {"interval_minutes": 60},
}


def _find_config_file() -> Path | None:
    """Look for config.yaml in standard locations."""
    candidates = [
        Path.cwd() / "config" / "config.yaml",
        Path.cwd() / "config.yaml",
        Path.home() / ".dumbwatch" / "config.yaml",
    ]
    for p in candidates:
        if p.exists():
            return p
    return None


def load_config(config_path: str | Path | None = None) -> dict[str, Any]:
    """Load configuration, merging defaults with file and env vars."""
    cfg = copy.deepcopy(DEFAULT_CONFIG)

    path = Path(config_path) if config_path else _find_config_file()
    if path and path.exists():
        with open(path) as f:
            file_cfg = yaml.safe_load(f) or {}
        _deep_merge(cfg, file_cfg)

    # Env overrides
    token = os.environ.get("TINYBIRD_TOKEN") or os.environ.get("TINYBIRD_API_TOKEN")
    if token:
        cfg["tinybird"]["token"] = token
    if base_url := os.environ.get("TINYBIRD_BASE_URL"):
        cfg["tinybird"]["base_url"] = base_url
    if backend := os.environ.get("DUMBWATCH_STORAGE_BACKEND"):
        cfg["storage_backend"] = backend
    if threshold := os.environ.get("DUMBWATCH_CLUSTER_THRESHOLD"):
        cfg["clustering"]["threshold"] = float(threshold)

    return cfg


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base."""
    for k, v in override.items():
        if k in base and isinstance(base[k], dict) and isinstance(v, dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base
