"""Prompt enhancement for the text-to-image stage.

User prompts are short ("a red sports car").  Diffusion models asked for
such prompts happily crop the subject or paint it into a busy scene, which
is useless as a 3D reconstruction source.  The enhancer appends fixed
framing text to the prompt and supplies a matching negative prompt.

Modes
-----
``PromptMode.GENERIC``
    Used by ``POST /api/generate``.  Appends the framing suffix so the
    subject is fully in frame.

``PromptMode.FOR_3D``
    Used by the text-to-3D pipeline.  Appends the 3D composition suffix
    (isolated object, white background, studio lighting) and then at most
    one category suffix chosen by keyword matching.

Category Dispatch
-----------------
Categories are an ordered table of :class:`CategoryRule` entries.  The
prompt is lower-cased and each rule's keywords are tested as substrings in
table order; the first rule with a matching keyword wins and no further
rules are consulted.  "robot car" therefore resolves to *vehicle*, because
the vehicle rule precedes the character rule.

Substring matching is naive: "cathedral" contains "cat" and
resolves to *animal*.

Usage
-----
::

    enhanced = enhance("a red sports car", PromptMode.FOR_3D)
    enhanced.positive   # "a red sports car, isolated object, ... entire car in frame"
    enhanced.negative   # the fixed 3D negative prompt
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import NamedTuple

logger = logging.getLogger(__name__)


class PromptMode(str, enum.Enum):
    """Which enhancement to apply."""

    GENERIC = "generic"
    FOR_3D = "for_3d"


class EnhancedPrompt(NamedTuple):
    """Positive and negative prompt pair sent to the text-to-image service."""

    positive: str
    negative: str


@dataclass(frozen=True)
class CategoryRule:
    """One entry of the category dispatch table.

    Attributes:
        category: Category name, used for logging.
        keywords: Lower-case substrings that select this category.
        suffix: Text appended to the prompt when the rule matches.
    """

    category: str
    keywords: tuple[str, ...]
    suffix: str

    def matches(self, lowered_prompt: str) -> bool:
        return any(keyword in lowered_prompt for keyword in self.keywords)


# ---------------------------------------------------------------------------
# Generic framing text.
# ---------------------------------------------------------------------------

FRAMING_SUFFIX = (
    ", full view, complete subject, fully in frame, not cropped, "
    "entire object visible, wide shot, nothing cut off, well framed, "
    "subject completely visible, full composition, properly framed"
)

FRAMING_NEGATIVE_PROMPT = (
    "cropped, cut off, partial view, incomplete, truncated, edges cut, "
    "frame cutting, not fully visible, missing parts, cropped out, "
    "cut off edges, partial object, blurry, low quality"
)

# ---------------------------------------------------------------------------
# 3D composition text.
# ---------------------------------------------------------------------------

BASE_3D_SUFFIX = (
    ", isolated object, centered, white background, studio lighting, "
    "3D model reference, clean composition, no background elements, "
    "product photography style, professional lighting, detailed, high quality, "
    "full object visible, complete subject, fully in frame, not cropped, "
    "entire object shown, wide shot, nothing cut off"
)

NEGATIVE_PROMPT_3D = (
    "blurry, low quality, multiple objects, cluttered background, "
    "dark shadows, cut off edges, partial view, cropped, text, watermark, "
    "busy background, poor lighting, distorted, abstract, environment, "
    "landscape, sky, clouds, water, ocean, sea, road, street, grass, "
    "trees, buildings in background, people in background, "
    "multiple views, collage, montage, split screen, complex scene, "
    "cropped out, cut off, partial object, incomplete, truncated, "
    "edges cut, frame cutting, not fully visible, missing parts"
)

# Priority order matters: first match wins.
CATEGORY_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(
        category="vehicle",
        keywords=("car", "vehicle", "truck", "motorcycle", "sports car"),
        suffix=(
            ", side view, automotive photography, metallic finish, "
            "no road, no environment, complete vehicle fully visible, entire car in frame"
        ),
    ),
    CategoryRule(
        category="vessel",
        keywords=("ship", "boat", "sailing"),
        suffix=(
            ", side view, naval vessel, no water, no ocean, no sea, "
            "complete ship fully visible, entire vessel in frame"
        ),
    ),
    CategoryRule(
        category="character",
        keywords=("robot", "character", "armor"),
        suffix=(
            ", full body, standing pose, front view, character design, "
            "complete figure fully visible, entire character in frame"
        ),
    ),
    CategoryRule(
        category="furniture",
        keywords=("chair", "table", "furniture"),
        suffix=(
            ", furniture photography, isometric view, no room, no environment, "
            "complete furniture piece fully visible, entire item in frame"
        ),
    ),
    CategoryRule(
        category="building",
        keywords=("house", "building", "tower", "castle"),
        suffix=(
            ", architectural model, front elevation, no landscape, no surroundings, "
            "complete building fully visible, entire structure in frame"
        ),
    ),
    CategoryRule(
        category="animal",
        keywords=("animal", "cat", "dog", "bird"),
        suffix=(
            ", animal photography, side profile, natural pose, no habitat, no environment, "
            "full body animal fully visible, entire creature in frame"
        ),
    ),
    CategoryRule(
        category="aircraft",
        keywords=("plane", "aircraft", "airplane"),
        suffix=(
            ", aircraft photography, side view, no sky, no clouds, no background, "
            "complete aircraft fully visible, entire plane in frame"
        ),
    ),
)


def match_category(prompt: str) -> CategoryRule | None:
    """Return the first category rule matching *prompt*, or ``None``.

    Args:
        prompt: The original user prompt.  Matching is case-insensitive.

    Returns:
        The winning :class:`CategoryRule`, or ``None`` when no keyword of
        any rule occurs in the prompt.
    """
    lowered = prompt.lower()
    return next((rule for rule in CATEGORY_RULES if rule.matches(lowered)), None)


def enhance(prompt: str, mode: PromptMode = PromptMode.GENERIC) -> EnhancedPrompt:
    """Build the positive and negative prompt for *prompt*.

    The original prompt text is kept verbatim at the start of the positive
    prompt; enhancement only appends.

    Args:
        prompt: The user prompt.
        mode: :attr:`PromptMode.GENERIC` for plain image generation,
            :attr:`PromptMode.FOR_3D` for images feeding the 3D stage.

    Returns:
        An :class:`EnhancedPrompt` pair.
    """
    if mode is PromptMode.FOR_3D:
        rule = match_category(prompt)
        category_suffix = rule.suffix if rule else ""
        positive = prompt + BASE_3D_SUFFIX + category_suffix
        logger.info(
            f"Enhanced prompt for 3D (category={rule.category if rule else 'none'}): {positive}"
        )
        return EnhancedPrompt(positive, NEGATIVE_PROMPT_3D)

    positive = prompt + FRAMING_SUFFIX
    logger.info(f"Enhanced prompt with framing: {positive}")
    return EnhancedPrompt(positive, FRAMING_NEGATIVE_PROMPT)
