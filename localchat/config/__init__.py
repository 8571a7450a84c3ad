from .profiles import DEFAULT_PROFILE, ModelProfile, ModelProfiles
from .settings import Settings
from .system_prompts import PREDEFINED_PROMPTS, resolve_system_prompt

__all__ = [
    "Settings",
    "ModelProfile",
    "ModelProfiles",
    "DEFAULT_PROFILE",
    "PREDEFINED_PROMPTS",
    "resolve_system_prompt",
]
