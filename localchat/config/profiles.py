"""
Model profile table.

Maps a model name to the context size it declares and how many tokens it
may generate per reply. Read-only once loaded; sessions only ever look
things up.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from localchat.exceptions import ModelProfileError

logger = logging.getLogger("ModelProfiles")


@dataclass(frozen=True)
class ModelProfile:
    """Static capabilities of one model."""

    context_window_size: int
    max_output_tokens: int


DEFAULT_PROFILE = ModelProfile(context_window_size=4096, max_output_tokens=1024)

# Keys are family prefixes of Ollama model names ("llama3.1:8b" -> "llama3").
BUILTIN_PROFILES: Dict[str, ModelProfile] = {
    "llama2": ModelProfile(4096, 2048),
    "llama3": ModelProfile(8192, 2048),
    "llama3.1": ModelProfile(131072, 4096),
    "llama3.2": ModelProfile(131072, 4096),
    "mistral": ModelProfile(32768, 4096),
    "mixtral": ModelProfile(32768, 4096),
    "codellama": ModelProfile(16384, 4096),
    "gemma": ModelProfile(8192, 2048),
    "gemma2": ModelProfile(8192, 2048),
    "phi3": ModelProfile(4096, 1024),
    "qwen2": ModelProfile(32768, 4096),
    "qwen2.5": ModelProfile(32768, 4096),
    "deepseek-r1": ModelProfile(65536, 8192),
    "deepseek-coder": ModelProfile(16384, 4096),
}


class ModelProfiles:
    """
    Lookup table with a conservative fallback for unknown models.

    Resolution order:
    1. Exact name ("mistral:7b-instruct").
    2. Base name without the tag ("mistral").
    3. Longest known family prefix of the base name.
    4. DEFAULT_PROFILE.
    """

    def __init__(
        self,
        profiles: Optional[Mapping[str, ModelProfile]] = None,
        default: ModelProfile = DEFAULT_PROFILE,
    ):
        table = dict(BUILTIN_PROFILES if profiles is None else profiles)
        self._profiles: Mapping[str, ModelProfile] = MappingProxyType(table)
        self.default = default

    def get(self, model_name: str) -> ModelProfile:
        name = (model_name or "").strip().lower()
        if name in self._profiles:
            return self._profiles[name]

        base = name.split(":", 1)[0]
        if base in self._profiles:
            return self._profiles[base]

        matches = [key for key in self._profiles if base.startswith(key)]
        if matches:
            return self._profiles[max(matches, key=len)]

        logger.debug("No profile for '%s', using default", model_name)
        return self.default

    def __contains__(self, model_name: str) -> bool:
        return self.get(model_name) is not self.default

    @classmethod
    def load(cls, models_json_path: Optional[Path] = None) -> "ModelProfiles":
        """
        Builtin table, extended by an optional JSON file:

            {"models": {"my-model": {"context_window": 8192, "max_output_tokens": 2048}}}
        """
        table = dict(BUILTIN_PROFILES)
        if models_json_path is None:
            return cls(table)

        try:
            data = json.loads(Path(models_json_path).read_text(encoding="utf-8"))
            for name, entry in data.get("models", {}).items():
                table[name.lower()] = ModelProfile(
                    context_window_size=int(entry["context_window"]),
                    max_output_tokens=int(
                        entry.get("max_output_tokens", DEFAULT_PROFILE.max_output_tokens)
                    ),
                )
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            raise ModelProfileError(
                f"Failed to load model profiles: {e}",
                config_file=str(models_json_path),
                original_error=e,
            ) from e

        logger.info("Loaded model profiles from %s", models_json_path)
        return cls(table)
