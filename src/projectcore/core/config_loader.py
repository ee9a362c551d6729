"""Config file adapters.

Supports three formats, chosen by extension:
  - ``.yaml`` / ``.yml``: parsed with ``yaml.safe_load`` and merged.
  - ``.json``:            parsed with ``json.load`` and merged.
  - ``.py``:              executed; must define
                          ``configure(set, get, has, config)``.

Every failure is raised as ConfigLoadError naming the file.
"""

from __future__ import annotations

import importlib.util
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from projectcore.errors import ConfigLoadError

if TYPE_CHECKING:
    from projectcore.core.namespace import ConfigStore

logger = logging.getLogger(__name__)

YAML_SUFFIXES = frozenset({".yaml", ".yml"})


def _read_mapping(path: Path) -> dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        if path.suffix.lower() in YAML_SUFFIXES:
            data = yaml.safe_load(f)
        else:
            data = json.load(f)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise TypeError(
            f"config file must contain a mapping, got {type(data).__name__}"
        )
    return data


def _run_script(config: ConfigStore, path: Path) -> None:
    spec = importlib.util.spec_from_file_location(f"_projectcore_config_{path.stem}", path)
    if spec is None or spec.loader is None:
        raise ImportError(f"cannot import {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    configure = getattr(module, "configure", None)
    if not callable(configure):
        raise TypeError("incorrect config file format: missing configure() function")
    configure(config.set, config.get, config.has, config)


def load_config_file(config: ConfigStore, path: str | Path) -> None:
    """Apply the config file at *path* to *config*.

    Raises:
        ConfigLoadError: If the file is missing, malformed or of an
            unsupported type.
    """
    path = Path(path).resolve()
    suffix = path.suffix.lower()
    try:
        if not path.is_file():
            raise FileNotFoundError(f"Config file not found: {path}")
        if suffix in YAML_SUFFIXES or suffix == ".json":
            config.merge(_read_mapping(path))
        elif suffix == ".py":
            _run_script(config, path)
        else:
            raise ValueError(f"unsupported config file type: {suffix or '(none)'}")
    except ConfigLoadError:
        raise
    except Exception as exc:
        raise ConfigLoadError(path, exc) from exc

    logger.info("Config loaded: %s", path)
