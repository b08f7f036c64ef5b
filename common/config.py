from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any, Dict

import yaml

DEFAULT_CONFIG_PATH = "config/params.yaml"

DEFAULTS: Dict[str, Any] = {
    "earthengine": {
        "key_file": "earthengine.json",
        "project": None,
        "cache_dir": "public/images/earthengine",
        "url_prefix": "/images/earthengine",
        "skip_cache": False,
        "download_timeout": None,
    },
    "server": {"host": "0.0.0.0", "port": 3000},
    "logging": {"level": "INFO", "format": "json"},
}

_TRUTHY = {"1", "true", "yes", "on"}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _apply_env(cfg: Dict[str, Any]) -> None:
    ee_cfg = cfg["earthengine"]
    if os.getenv("EE_KEY_FILE"):
        ee_cfg["key_file"] = os.environ["EE_KEY_FILE"]
    if os.getenv("EE_CACHE_DIR"):
        ee_cfg["cache_dir"] = os.environ["EE_CACHE_DIR"]
    if os.getenv("EE_PROJECT"):
        ee_cfg["project"] = os.environ["EE_PROJECT"]
    if os.getenv("EE_SKIP_CACHE"):
        ee_cfg["skip_cache"] = os.environ["EE_SKIP_CACHE"].strip().lower() in _TRUTHY
    if os.getenv("LOG_LEVEL"):
        cfg["logging"]["level"] = os.environ["LOG_LEVEL"]


def load_config(path: str = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """
    Load YAML params over the built-in defaults, then apply env overrides
    (EE_KEY_FILE, EE_CACHE_DIR, EE_PROJECT, EE_SKIP_CACHE, LOG_LEVEL).
    A missing file yields the defaults.
    """
    loaded: Dict[str, Any] = {}
    p = Path(path)
    if p.exists():
        with p.open("r") as f:
            loaded = yaml.safe_load(f) or {}
    cfg = _deep_merge(DEFAULTS, loaded)
    _apply_env(cfg)
    return cfg
