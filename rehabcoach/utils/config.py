from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import yaml

DEFAULT_RUNTIME_CONFIG = Path("configs/runtime.yaml")
RUNTIME_CONFIG_ENV = "REHAB_RUNTIME_CONFIG"


@dataclass
class RuntimeConfig:
    frame: Dict[str, Any] = field(default_factory=dict)
    mediapipe: Dict[str, Any] = field(default_factory=dict)
    session: Dict[str, Any] = field(default_factory=dict)
    logging: Dict[str, Any] = field(default_factory=dict)


def load_runtime_config(path: str | Path) -> RuntimeConfig:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return RuntimeConfig(
        frame=data.get("frame") or {},
        mediapipe=data.get("mediapipe") or {},
        session=data.get("session") or {},
        logging=data.get("logging") or {},
    )


def resolve_runtime_config_path() -> Path:
    return Path(os.getenv(RUNTIME_CONFIG_ENV, str(DEFAULT_RUNTIME_CONFIG)))
