"""
Static placeholder images used for seeded media that has no uploaded file.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from importlib import resources
from typing import Optional


@dataclass(frozen=True)
class PlaceholderImage:
    id: str
    description: str
    image_url: str
    image_hint: str


@lru_cache(maxsize=1)
def load_placeholder_images() -> dict[str, PlaceholderImage]:
    raw = (
        resources.files("celebrate")
        .joinpath("placeholder_images.json")
        .read_text(encoding="utf-8")
    )
    images = {}
    for item in json.loads(raw).get("placeholderImages", []):
        image = PlaceholderImage(
            id=item["id"],
            description=item.get("description", ""),
            image_url=item.get("imageUrl", ""),
            image_hint=item.get("imageHint", ""),
        )
        images[image.id] = image
    return images


def find_placeholder(media_id: str) -> Optional[PlaceholderImage]:
    return load_placeholder_images().get(media_id)
