"""
Prompt Builder

Turns a note's title and content into a short directive for the image model.

Two strategies:
    - Enhanced: a text-completion model rewrites the note into a prompt,
      guided by a keyword analysis (content type, mood, visual elements).
    - Basic: a fixed template filled from the note, no network involved.

The builder never raises: every failure of the enhanced strategy degrades
to the basic one and is only logged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Final

from openai import AsyncOpenAI, OpenAIError

from notecanvas.core.exceptions import ProviderUnavailable
from notecanvas.schemas.images import DEFAULT_STYLE, IMAGE_STYLES

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHARS: Final[int] = 180

# Ordered: the first group with a matching keyword wins
CONTENT_TYPE_KEYWORDS: Final[tuple[tuple[str, tuple[str, ...]], ...]] = (
    ("meeting", ("meeting", "réunion", "notes", "agenda")),
    ("concept", ("idea", "idée", "concept", "brainstorm")),
    ("task", ("task", "tâche", "todo", "action")),
    ("project", ("project", "projet", "plan")),
    ("personal", ("personal", "personnel", "diary", "journal")),
    ("recipe", ("recipe", "recette", "food", "cuisine")),
    ("travel", ("travel", "voyage", "trip")),
    ("technical", ("code", "programming", "développement")),
)

MOOD_KEYWORDS: Final[tuple[tuple[str, tuple[str, ...]], ...]] = (
    ("positive", ("excited", "amazing", "great", "wonderful", "fantastic")),
    ("urgent", ("urgent", "important", "critical", "deadline")),
    ("calm", ("calm", "peaceful", "relaxed", "meditation")),
    ("creative", ("creative", "artistic", "design", "inspiration")),
    ("serious", ("problem", "issue", "difficult", "challenge")),
)

VISUAL_ELEMENTS: Final[dict[str, dict[str, str]]] = {
    "meeting": {
        "photorealistic": "conference room, professional lighting, modern space",
        "artistic": "abstract collaboration, geometric shapes, corporate colors",
        "minimalist": "simple meeting space, white background, clean lines",
    },
    "concept": {
        "photorealistic": "lightbulb, brainstorming whiteboard, bright workspace",
        "artistic": "abstract idea visualization, flowing shapes, vibrant colors",
        "minimalist": "simple icon, clean background, focused composition",
    },
    "travel": {
        "photorealistic": "scenic destination, natural lighting, landscape view",
        "artistic": "stylized map, travel icons, wanderlust aesthetic",
        "minimalist": "simple travel symbol, clean design, neutral tones",
    },
    "recipe": {
        "photorealistic": "food photography, natural lighting, appetizing presentation",
        "artistic": "illustrated ingredients, cookbook style, warm colors",
        "minimalist": "simple food icon, clean plating, white background",
    },
}
DEFAULT_VISUAL_ELEMENTS: Final[str] = "professional composition, good lighting, clear details"

STYLE_PHRASES: Final[dict[str, str]] = {
    "photorealistic": "photorealistic, high quality, detailed",
    "artistic": "artistic, creative, stylized",
    "cartoon": "cartoon style, colorful, animated",
    "minimalist": "minimalist, clean, simple",
}

BASIC_CONTENT_EXCERPT: Final[int] = 40

SYSTEM_PROMPT: Final[str] = """You are an expert in prompt engineering for image generation models.
You use the content analysis provided to create optimized prompts.

STRICT RULES:
- MAX {max_chars} characters (CRITICAL)
- Respond in ENGLISH only
- Use the analysis insights provided
- Include specific visual details
- Avoid abstract concepts
- Format: "style, subject, composition, lighting, details"

Example: "photorealistic portrait, young professional, clean background, soft natural lighting, high detail"
"""

# Aspect ratio rules, checked in order against the lowercase prompt
ASPECT_RATIO_RULES: Final[tuple[tuple[tuple[str, ...], str], ...]] = (
    (("portrait", "person", "face", "headshot"), "3:4"),
    (("landscape", "panorama", "skyline", "horizon"), "16:9"),
    (("product", "object", "item", "tool"), "1:1"),
    (("story", "social", "mobile"), "9:16"),
)
SQUARE_STYLES: Final[tuple[str, ...]] = ("artistic", "minimalist")
DEFAULT_ASPECT_RATIO: Final[str] = "1:1"


@dataclass(frozen=True)
class PromptContext:
    """
    Immutable input of the prompt builder, validated once at pipeline entry.

    Attributes:
        title: Note title ('' when absent).
        content: Note content, or its default prompt when content is empty.
        style: One of IMAGE_STYLES.
        reference_image_urls: Existing images offered as style reference.
    """

    title: str = ""
    content: str = ""
    style: str = DEFAULT_STYLE
    reference_image_urls: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.style not in IMAGE_STYLES:
            raise ValueError(f"Unknown style '{self.style}', expected one of {IMAGE_STYLES}")

    @classmethod
    def from_note(
        cls,
        note: Any,
        style: str = DEFAULT_STYLE,
        use_existing_images: bool = False,
    ) -> PromptContext:
        """Build a context from a Note (content falls back to default_prompt)."""
        return cls(
            title=note.title or "",
            content=note.prompt_source(),
            style=style,
            reference_image_urls=tuple(note.image_urls) if use_existing_images else (),
        )


# ----------------------------------------------------------------------
# Pure analysis helpers
# ----------------------------------------------------------------------


def _first_match(text: str, groups: tuple[tuple[str, tuple[str, ...]], ...], default: str) -> str:
    for label, keywords in groups:
        if any(keyword in text for keyword in keywords):
            return label
    return default


def classify_content_type(title: str, content: str) -> str:
    """Return the first matching content category, else 'general'."""
    text = f"{title} {content}".lower()
    return _first_match(text, CONTENT_TYPE_KEYWORDS, "general")


def analyze_mood(content: str) -> str:
    """Return the first matching mood, else 'neutral'."""
    return _first_match(content.lower(), MOOD_KEYWORDS, "neutral")


def suggest_visual_elements(content_type: str, style: str) -> str:
    """Look up visual descriptors for (content_type, style)."""
    return VISUAL_ELEMENTS.get(content_type, {}).get(style, DEFAULT_VISUAL_ELEMENTS)


def analyze_context(context: PromptContext) -> str:
    """One-line analysis handed to the text-completion model."""
    content_type = classify_content_type(context.title, context.content)
    mood = analyze_mood(context.content)
    visual = suggest_visual_elements(content_type, context.style)
    return f"Type: {content_type}, Mood: {mood}, Visual: {visual}"


def truncate_prompt(prompt: str, max_chars: int) -> str:
    """Clip to max_chars, marking the cut with an ellipsis."""
    if len(prompt) <= max_chars:
        return prompt
    return prompt[: max_chars - 3] + "..."


def generate_basic_prompt(context: PromptContext, max_chars: int = DEFAULT_MAX_CHARS) -> str:
    """
    Template prompt: style phrase, subject, content excerpt, lighting.

    Always non-empty and at most max_chars long.
    """
    base_style = STYLE_PHRASES.get(context.style, STYLE_PHRASES[DEFAULT_STYLE])
    subject = context.title.strip() or "abstract concept"
    details = context.content.strip()[:BASIC_CONTENT_EXCERPT] or "creative interpretation"
    return f"{base_style}, {subject}, {details}, professional lighting"[:max_chars]


def select_aspect_ratio(prompt: str, style: str) -> str:
    """
    Pick an aspect ratio from the prompt wording and style.

    >>> select_aspect_ratio("a portrait of a person smiling", "photorealistic")
    '3:4'
    """
    prompt_lower = prompt.lower()
    for keywords, ratio in ASPECT_RATIO_RULES:
        if any(keyword in prompt_lower for keyword in keywords):
            return ratio
    if style in SQUARE_STYLES:
        return "1:1"
    return DEFAULT_ASPECT_RATIO


# ----------------------------------------------------------------------
# Builder
# ----------------------------------------------------------------------


class PromptBuilder:
    """
    Prompt builder backed by an OpenAI-compatible text-completion endpoint.

    The client is injected (built once per process); pass None when no
    credential is configured and every build uses the basic strategy.

    Usage::

        builder = PromptBuilder(AsyncOpenAI(api_key=..., base_url=...), model="...")
        prompt = await builder.build(PromptContext(title="Trip", content="Lisbon"))
    """

    def __init__(
        self,
        client: AsyncOpenAI | None,
        model: str,
        max_chars: int = DEFAULT_MAX_CHARS,
        temperature: float = 0.1,
        max_tokens: int = 60,
    ) -> None:
        self._client = client
        self._model = model
        self._max_chars = max_chars
        self._temperature = temperature
        self._max_tokens = max_tokens

    @property
    def max_chars(self) -> int:
        return self._max_chars

    def basic(self, context: PromptContext) -> str:
        return generate_basic_prompt(context, self._max_chars)

    async def build(self, context: PromptContext) -> str:
        """
        Build a prompt for the context. Never raises.

        Returns:
            A non-empty prompt of at most max_chars characters.
        """
        if self._client is None:
            logger.info("No text-completion credential, using basic prompt")
            return self.basic(context)

        try:
            return await self._enhance(context)
        except (OpenAIError, ProviderUnavailable) as e:
            logger.warning(
                "Prompt enhancement failed (%s), using basic prompt: %s",
                type(e).__name__,
                e,
            )
            return self.basic(context)

    async def _enhance(self, context: PromptContext) -> str:
        """
        Ask the completion model for a prompt.

        Raises:
            OpenAIError: On HTTP errors, timeouts and connection failures.
            ProviderUnavailable: If the response has no usable text.
        """
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT.format(max_chars=self._max_chars)},
            {"role": "user", "content": self._user_message(context)},
        ]
        completion = await self._client.chat.completions.create(  # type: ignore[union-attr]
            model=self._model,
            messages=messages,
            max_tokens=self._max_tokens,
            temperature=self._temperature,
            top_p=0.9,
        )

        choices = getattr(completion, "choices", None) or []
        message = getattr(choices[0], "message", None) if choices else None
        content = getattr(message, "content", None)
        if not isinstance(content, str):
            raise ProviderUnavailable("Malformed completion response")

        prompt = content.strip().replace('"', "").replace("'", "").strip()
        if not prompt:
            raise ProviderUnavailable("Empty completion response")

        prompt = truncate_prompt(prompt, self._max_chars)
        logger.info("Enhanced prompt: %s", prompt)
        return prompt

    def _user_message(self, context: PromptContext) -> str:
        lines = [
            f"Content analysis: {analyze_context(context)}",
            f'Note Title: "{context.title}"',
            f'Note Content: "{context.content}"',
            f"Requested Style: {context.style}",
        ]
        if context.reference_image_urls:
            lines.append(f"Existing Images: {len(context.reference_image_urls)}")
        lines.append(f"Generate an optimized prompt in English, max {self._max_chars} characters.")
        return "\n".join(lines)
