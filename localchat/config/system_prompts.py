"""Predefined system prompts selectable by id."""

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class SystemPrompt:
    id: str
    name: str
    description: str
    prompt: str


PREDEFINED_PROMPTS: Dict[str, SystemPrompt] = {
    p.id: p
    for p in (
        SystemPrompt(
            id="coding",
            name="Coding Assistant",
            description="Programming and software development",
            prompt=(
                "You are an expert programming assistant. "
                "Include code examples, discuss implementation details and "
                "performance, and show error handling in every example. "
                "Favor technical precision over simplification."
            ),
        ),
        SystemPrompt(
            id="writing",
            name="Writing Assistant",
            description="Content creation and editing",
            prompt=(
                "You are a professional writing assistant. "
                "Focus on clarity, tone and flow. Offer alternative phrasings "
                "and suggest structural improvements. Avoid jargon unless asked."
            ),
        ),
        SystemPrompt(
            id="technical",
            name="Technical Documentation",
            description="Reference docs and guides",
            prompt=(
                "You are a technical documentation specialist. "
                "Write structured, accurate documentation with headings, "
                "prerequisites, step-by-step instructions and examples."
            ),
        ),
        SystemPrompt(
            id="academic",
            name="Academic Research",
            description="Scholarly analysis",
            prompt=(
                "You are an academic research assistant. "
                "Analyze claims critically, distinguish evidence from opinion, "
                "note methodological limits and cite sources when you know them."
            ),
        ),
        SystemPrompt(
            id="general",
            name="General Assistant",
            description="Everyday questions",
            prompt=(
                "You are a helpful general assistant. "
                "Answer clearly and concisely, and ask for clarification "
                "when a request is ambiguous."
            ),
        ),
    )
}


def resolve_system_prompt(value: Optional[str]) -> Optional[str]:
    """
    Preset id -> its prompt text. Anything else is used verbatim.
    Empty input means no system prompt.
    """
    if not value or not value.strip():
        return None
    preset = PREDEFINED_PROMPTS.get(value.strip().lower())
    return preset.prompt if preset else value
