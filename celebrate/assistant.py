"""
Content moderation and image captioning used by the request handlers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

from celebrate.models import gemini

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_HINT = "image"


@dataclass(frozen=True)
class ModerationVerdict:
    isAppropriate: bool
    reason: Optional[str] = None


class ContentAssistant(Protocol):
    def moderate(self, text: str) -> ModerationVerdict:
        ...

    def caption(self, photo_data_uri: str) -> str:
        ...


@dataclass
class GeminiAssistant:
    api_key: str
    model: str = gemini.DEFAULT_MODEL

    def moderate(self, text: str) -> ModerationVerdict:
        output = gemini.moderate_wish(text, api_key=self.api_key, model=self.model)
        return ModerationVerdict(
            isAppropriate=output.isAppropriate, reason=output.reason
        )

    def caption(self, photo_data_uri: str) -> str:
        try:
            hint = gemini.generate_image_hint(
                photo_data_uri, api_key=self.api_key, model=self.model
            )
        except Exception as exc:
            logger.warning("Image hint generation failed: %s", exc)
            return DEFAULT_IMAGE_HINT
        return hint or DEFAULT_IMAGE_HINT


@dataclass
class StaticAssistant:
    """Offline stand-in: rejects blocked words, returns a fixed hint."""

    blocked_words: list[str] = field(default_factory=list)
    hint: str = DEFAULT_IMAGE_HINT
    moderated: list[str] = field(default_factory=list)

    def moderate(self, text: str) -> ModerationVerdict:
        self.moderated.append(text)
        lowered = text.lower()
        for word in self.blocked_words:
            if word.lower() in lowered:
                return ModerationVerdict(
                    isAppropriate=False, reason=f"Contains blocked word '{word}'"
                )
        return ModerationVerdict(isAppropriate=True)

    def caption(self, photo_data_uri: str) -> str:
        return self.hint
