"""Scene (background) state owned by one chat."""

import logging
from dataclasses import replace
from typing import Optional, Iterable, Dict, Any

from .models.scene import BackgroundState

logger = logging.getLogger(__name__)

BACKGROUND_CHANGE = "data-backgroundChange"


class SceneContext:
    """Current background of one chat.

    Each chat owns its own context, so two conversations never see each
    other's scene.
    """

    def __init__(self, background: Optional[BackgroundState] = None):
        self._background = background or BackgroundState()

    @property
    def background(self) -> BackgroundState:
        return replace(self._background)

    def set_background(self, lighting_state: Optional[str] = None,
                       description: Optional[str] = None,
                       image_url: Optional[str] = None,
                       is_visible: bool = True) -> BackgroundState:
        """Replace the background; omitted fields keep their current values."""
        current = self._background
        self._background = BackgroundState(
            lighting_state=lighting_state or current.lighting_state,
            description=description or current.description,
            is_visible=is_visible,
            image_url=image_url if image_url is not None else current.image_url,
        )
        logger.debug(f"Background set: {self._background}")
        return self.background

    def clear_background(self) -> BackgroundState:
        """Hide the background but remember what it was."""
        self._background = replace(self._background, is_visible=False)
        return self.background

    def apply_stream(self, deltas: Iterable[Dict[str, Any]]) -> bool:
        """Apply the latest background change found in a chat data stream.

        Args:
            deltas: Stream parts, each a dict with 'type' and 'data'

        Returns:
            True if a background change was applied
        """
        latest = None
        for delta in deltas:
            if delta.get('type') == BACKGROUND_CHANGE:
                latest = delta

        if latest is None:
            return False

        data = latest.get('data') or {}
        self._background = BackgroundState(
            lighting_state=data.get('lightingState', self._background.lighting_state),
            description=data.get('description', self._background.description),
            is_visible=True,
            image_url=data.get('imageUrl'),
        )
        logger.info(f"Background changed: {self._background.description} ({self._background.lighting_state})")
        return True
