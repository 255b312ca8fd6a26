"""Scene (background) state model."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class BackgroundState:
    """What the chat scene currently shows behind the character."""
    lighting_state: str = "day"
    description: str = "Default scene"
    is_visible: bool = True
    image_url: Optional[str] = None
