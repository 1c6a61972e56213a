"""Local LLM integration for prompt enhancement and keyword extraction."""

import logging
import re

import openai
from openai import AsyncOpenAI

from config import LLMConfig
from fallback_prompts import related_prompt

logger = logging.getLogger(__name__)

MIN_ENHANCED_WORDS = 3
MAX_KEYWORDS = 5

ENHANCE_PROMPT = (
    'You are an expert at creating detailed, artistic image generation prompts. '
    'Enhance this prompt to be more detailed and visually rich: "{prompt}". '
    'Focus on artistic elements, composition, lighting, and mood. '
    'Reply with the enhanced prompt only.'
)

KEYWORDS_PROMPT = (
    'Extract the most important nouns and adjectives from the following text to use as '
    'search keywords. Return a short, comma-separated list of 3-5 keywords. Do not use any '
    'introductory text, just the keywords. Text: "{text}"'
)

CONTEXTUAL_PROMPT = (
    'Based on these recent image prompts: "{history}", generate a new creative prompt that '
    'would complement them. The prompt should be artistic and descriptive. '
    'Reply with the prompt only.'
)


def clean_output(text: str) -> str:
    """
    Clean LLM output by removing thinking blocks, code fences and wrapping quotes.

    Args:
        text: Raw LLM output

    Returns:
        Cleaned single-paragraph text
    """
    text = re.sub(r'<think>.*?</think>', '', text or '', flags=re.DOTALL)

    code_block_match = re.search(r'```(?:\w+)?\s*\n(.*?)```', text, flags=re.DOTALL)
    if code_block_match:
        text = code_block_match.group(1)

    text = text.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        text = text[1:-1].strip()
    return re.sub(r'\s+', ' ', text)


class PromptEnhancer:
    """Talks to an OpenAI-compatible local model server. Never raises to callers."""

    def __init__(self, config: LLMConfig, client: AsyncOpenAI | None = None):
        self.config = config
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                base_url=self.config.base_url,
                api_key=self.config.api_key,
                timeout=self.config.timeout,
            )
        return self._client

    async def _complete(self, content: str, model: str | None = None) -> str | None:
        """Single-turn completion; None on any failure."""
        if not self.config.enabled:
            return None
        try:
            response = await self._get_client().chat.completions.create(
                model=model or self.config.model,
                messages=[{"role": "user", "content": content}],
                temperature=self.config.temperature,
                top_p=self.config.top_p,
                max_tokens=self.config.max_tokens,
            )
        except openai.OpenAIError as e:
            logger.warning(f"LLM request failed: {e}")
            return None

        choices = getattr(response, "choices", None) or []
        if not choices or not choices[0].message.content:
            logger.warning("LLM returned an empty response")
            return None
        return clean_output(choices[0].message.content) or None

    async def enhance(self, prompt: str) -> str | None:
        """
        Rewrite a prompt into a more detailed, artistic one.

        Returns:
            The enhanced prompt, or None if the model is unavailable or the
            answer is too short to be useful
        """
        enhanced = await self._complete(ENHANCE_PROMPT.format(prompt=prompt))
        if enhanced is None:
            return None
        if len(enhanced.split()) < MIN_ENHANCED_WORDS:
            logger.warning(f"Discarding enhancement that is too short: {enhanced!r}")
            return None
        return enhanced

    async def extract_keywords(self, text: str) -> str:
        """Return 3-5 comma-separated keywords, or the first words of the text."""
        keywords = await self._complete(KEYWORDS_PROMPT.format(text=text), model=self.config.fast_model)
        if keywords:
            parts = [k.strip() for k in keywords.split(",") if k.strip()]
            if parts:
                return ", ".join(parts[:MAX_KEYWORDS])
        return " ".join(text.split()[:MAX_KEYWORDS])

    async def suggest_contextual_prompt(self, history: list[str]) -> str:
        """Suggest a prompt that complements the recent ones."""
        recent = [p for p in history if p][-3:]
        if recent:
            suggestion = await self._complete(CONTEXTUAL_PROMPT.format(history=", ".join(recent)))
            if suggestion:
                return suggestion
        return related_prompt(history)

    async def is_available(self) -> bool:
        """Check whether the model server answers a model listing."""
        if not self.config.enabled:
            return False
        try:
            await self._get_client().models.list()
        except openai.OpenAIError as e:
            logger.info(f"LLM server not available at {self.config.base_url}: {e}")
            return False
        return True

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
