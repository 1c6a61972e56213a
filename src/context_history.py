"""Rolling record of what has been generated, for contextual prompts."""

import random
from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class ContextEntry:
    original: str
    enhanced: str
    timestamp: datetime = field(default_factory=datetime.now)


class ContextHistory:
    """Keeps the most recent entries and generated prompts, capped at max_history."""

    def __init__(self, max_history: int = 10):
        self.max_history = max_history
        self.entries: list[ContextEntry] = []
        self.prompts: list[str] = []

    def add(self, original: str, enhanced: str | None = None) -> ContextEntry:
        entry = ContextEntry(original=original, enhanced=enhanced or original)
        self.entries.append(entry)
        self.entries = self.entries[-self.max_history:]
        return entry

    def add_prompt(self, prompt: str) -> None:
        self.prompts.append(prompt)
        self.prompts = self.prompts[-self.max_history:]

    def recent_prompts(self, count: int = 3) -> list[str]:
        return self.prompts[-count:]

    def can_start_contextual(self, min_images: int) -> bool:
        return len(self.prompts) >= min_images

    def inspired_prompt(self, rng: random.Random | None = None) -> str | None:
        """
        Build an "Inspired by" prompt from up to three random prior prompts.

        Returns:
            The prompt, or None when there is no history yet
        """
        if not self.prompts:
            return None
        rng = rng or random.Random()
        picks = rng.sample(self.prompts, min(3, len(self.prompts)))
        return f"Inspired by: {' and '.join(picks)}, create something related but unique"

    def clear(self) -> None:
        self.entries.clear()
        self.prompts.clear()
