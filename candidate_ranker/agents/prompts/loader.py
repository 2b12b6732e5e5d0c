"""
Prompt loader.

Loads YAML prompt files from this directory, caches them and fills
``{variable}`` placeholders.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import yaml
from loguru import logger

from candidate_ranker.core.config import settings


class PromptLoader:
    """
    YAML prompt loader.

    Nested keys are addressed with dots (``"ranking.system"``). With
    ``hot_reload`` the file is re-read on every access.
    """

    def __init__(self, base_path: Path | str | None = None, hot_reload: bool = False):
        if base_path is None:
            base_path = Path(__file__).parent
        self.base_path = Path(base_path)
        self.hot_reload = hot_reload
        self._cache: Dict[str, Dict[str, Any]] = {}

    def load(self, name: str) -> Dict[str, Any]:
        """
        Load ``<name>.yaml``.

        Raises:
            FileNotFoundError: no such prompt file
            yaml.YAMLError: the file does not parse
        """
        if not self.hot_reload and name in self._cache:
            return self._cache[name]

        file_path = self.base_path / f"{name}.yaml"
        if not file_path.exists():
            raise FileNotFoundError(f"Prompt file not found: {file_path}")

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            self._cache[name] = data
            return data
        except yaml.YAMLError as e:
            logger.error("Failed to parse YAML {}: {}", file_path, e)
            raise

    def _lookup(self, name: str, key: str) -> Any:
        value: Any = self.load(name)
        for part in key.split("."):
            if not isinstance(value, dict):
                raise KeyError(f"Cannot access '{key}' in {name}: intermediate value is not a mapping")
            if part not in value:
                raise KeyError(f"Prompt key not found: {name}.{key}")
            value = value[part]
        return value

    def get(self, name: str, key: str, /, **kwargs) -> str:
        """
        Return a prompt with its placeholders filled.

        ``name`` and ``key`` are positional-only, so placeholders may use
        those names too.

        Raises:
            KeyError: the key (or a placeholder value) is missing
            TypeError: the key does not hold a string
        """
        value = self._lookup(name, key)
        if not isinstance(value, str):
            raise TypeError(f"Expected a string prompt, but {name}.{key} is {type(value).__name__}")

        if kwargs:
            return value.format(**kwargs)
        return value

    def get_config(self, name: str, key: str | None = None) -> Any:
        """Non-prompt values stored alongside the prompts"""
        if key is None:
            return self.load(name)
        return self._lookup(name, key)


_loader: PromptLoader | None = None


def get_prompt_loader(hot_reload: bool | None = None) -> PromptLoader:
    """Global loader; hot reload is on by default in development."""
    global _loader
    if _loader is None:
        if hot_reload is None:
            hot_reload = settings.is_development
        _loader = PromptLoader(hot_reload=hot_reload)
    return _loader


def get_prompt(name: str, key: str, /, **kwargs) -> str:
    """
    Example:
        >>> prompt = get_prompt("classifier", "ranking.user", criteria="Backend")
    """
    return get_prompt_loader().get(name, key, **kwargs)


def get_config(name: str, key: str | None = None) -> Any:
    return get_prompt_loader().get_config(name, key)
