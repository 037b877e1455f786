# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

import base64
import binascii
import logging
import time
from typing import Optional

from google import genai
from google.genai import types
from pydantic import BaseModel, Field

from celebrate.models import prompts

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"
HINT_MAX_OUTPUT_TOKENS = 20
SAFETY_BLOCKED_REASON = "Content blocked by safety filters"

MODERATION_SAFETY_SETTINGS = [
    types.SafetySetting(
        category=category,
        threshold=types.HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    )
    for category in (
        types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
        types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
        types.HarmCategory.HARM_CATEGORY_HARASSMENT,
        types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
    )
]


class GeminiInvalidResponseException(Exception):
    pass


class ModerationOutput(BaseModel):
    isAppropriate: bool = Field(
        description="True if the content is appropriate; false if it violates content policy."
    )
    reason: Optional[str] = Field(
        default=None,
        description="The reason why the content was flagged as inappropriate.",
    )


def parse_data_uri(data_uri: str) -> tuple[str, bytes]:
    """Splits 'data:<mime>;base64,<data>' into its MIME type and raw bytes."""
    if not data_uri.startswith("data:") or ";base64," not in data_uri:
        raise ValueError("Expected a base64 data URI")
    header, encoded = data_uri[len("data:"):].split(";base64,", 1)
    try:
        data = base64.b64decode(encoded, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 payload in data URI: {e}") from e
    return header or "application/octet-stream", data


def _was_blocked(response) -> bool:
    feedback = getattr(response, "prompt_feedback", None)
    if feedback is not None and getattr(feedback, "block_reason", None):
        return True
    for candidate in getattr(response, "candidates", None) or []:
        if candidate.finish_reason == types.FinishReason.SAFETY:
            return True
    return False


def moderate_wish(
    text: str,
    api_key: str,
    model: str = DEFAULT_MODEL,
) -> ModerationOutput:
    """
    Asks Gemini whether a birthday wish is appropriate.

    A prompt that Gemini's own safety filters refuse to answer is treated as
    an inappropriate wish rather than an error.

    Args:
        text (str): The wish message.
        api_key (str): The Gemini API key.
        model (str): The model to call with.

    Returns:
        ModerationOutput: The verdict and, when rejected, the reason.
    """
    client = genai.Client(api_key=api_key)
    start_time = time.time()
    response = client.models.generate_content(
        model=model,
        contents=prompts.make_moderate_wish_prompt(text),
        config=types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=ModerationOutput,
            safety_settings=MODERATION_SAFETY_SETTINGS,
            temperature=0,
        ),
    )
    logger.info("Gemini moderation call took: %.2fs", time.time() - start_time)

    if _was_blocked(response):
        return ModerationOutput(isAppropriate=False, reason=SAFETY_BLOCKED_REASON)
    if not response.parsed:
        raise GeminiInvalidResponseException()
    return response.parsed


def generate_image_hint(
    photo_data_uri: str,
    api_key: str,
    model: str = DEFAULT_MODEL,
) -> str:
    """Calls Gemini with an image and returns a two-word hint for it."""
    mime_type, image_bytes = parse_data_uri(photo_data_uri)
    client = genai.Client(api_key=api_key)

    response = client.models.generate_content(
        model=model,
        contents=[
            prompts.IMAGE_HINT_PROMPT,
            types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
        ],
        config=types.GenerateContentConfig(
            # Thinking tokens count against max_output_tokens on 2.5 models.
            thinking_config=types.ThinkingConfig(thinking_budget=0),
            temperature=0,
            max_output_tokens=HINT_MAX_OUTPUT_TOKENS,
        ),
    )
    if not response.text:
        raise GeminiInvalidResponseException()
    return " ".join(response.text.strip().strip('"').split()[:2])
