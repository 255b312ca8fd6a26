"""State publisher for pub/sub notification of session and playback changes."""

import logging
from dataclasses import replace
from typing import Any

from pubsub import pub

logger = logging.getLogger(__name__)

SESSION_TOPIC = "voice.session"
PLAYBACK_TOPIC = "voice.playback"


class StatePublisher:
    """Publishes state snapshots using pubsub.pub."""

    def __init__(self, topic: str):
        """Initialize state publisher.

        Args:
            topic: Pub/sub topic name for state snapshots
        """
        self.topic = topic
        logger.debug(f"StatePublisher initialized with topic: {topic}")

    def publish(self, state: Any) -> None:
        """Publish a copy of a state dataclass to the topic.

        Listeners get a snapshot, never the live object.
        """
        try:
            pub.sendMessage(self.topic, state=replace(state))
        except Exception as e:
            # A broken listener must not derail the state machine
            logger.error(f"Listener on {self.topic} failed: {e}", exc_info=True)
