"""YAML config lookup and a lazily loaded, process-wide config holder."""

import os
import threading
from pathlib import Path
from typing import Callable, Generic, TypeVar

import yaml

T = TypeVar("T")


def find_config_path(
    config_name: str | None,
    config_dir: Path,
    default_name: str = "default",
    env_var: str | None = None,
) -> Path:
    """Resolve ``<config_dir>/<name>.yaml``.

    The name comes from ``config_name``, then ``env_var``, then
    ``default_name``.

    Raises:
        FileNotFoundError: If the resolved file does not exist.
    """
    if config_name is None and env_var:
        config_name = os.environ.get(env_var)
    config_path = config_dir / f"{config_name or default_name}.yaml"
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")
    return config_path


def load_yaml(path: Path) -> dict:
    """Parse a YAML mapping; an empty file yields an empty dict."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    return data


class ConfigSingleton(Generic[T]):
    """Holds one config instance, loading it on first ``get()``.

    Scheduled runs read the config from a background thread, so loading is
    guarded by a lock.
    """

    def __init__(self, loader: Callable[[], T] | None = None):
        self._config: T | None = None
        self._loader = loader
        self._lock = threading.Lock()

    def get(self) -> T:
        with self._lock:
            if self._config is None:
                if self._loader is None:
                    raise RuntimeError("No config loaded and no loader set")
                self._config = self._loader()
            return self._config

    def set(self, config: T) -> None:
        with self._lock:
            self._config = config

    def reset(self) -> None:
        """Drop the cached config so the next ``get()`` reloads it."""
        with self._lock:
            self._config = None
