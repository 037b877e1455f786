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

MODERATE_WISH_PROMPT = """You are a content moderator for a birthday wish website. Your job is to determine if user-submitted content is appropriate and respectful.

Content that violates the content policy should be flagged as inappropriate.
Respond with isAppropriate set to false and a short reason when the content is
hateful, harassing, sexually explicit, or dangerous.

Here is the content to review:
{text}"""

IMAGE_HINT_PROMPT = """Generate a two-word hint (e.g., "woman smiling", "man hiking") that describes the main subject of the provided image.
Respond with the two words only."""


def make_moderate_wish_prompt(text: str) -> str:
    return MODERATE_WISH_PROMPT.format(text=text)
