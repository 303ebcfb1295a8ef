"""Playback status publisher for pub/sub event delivery."""

import logging
from typing import Callable
from pubsub import pub
from ..models.events import PlaybackStatusEvent

logger = logging.getLogger(__name__)


class StatusPublisher:
    """Publishes playback status events using pubsub.pub."""

    def __init__(self, topic: str = "playback.status"):
        """Initialize status publisher.

        Args:
            topic: Pub/sub topic name for playback status events
        """
        self.topic = topic
        logger.info(f"StatusPublisher initialized with topic: {topic}")

    def publish_status_event(self, event: PlaybackStatusEvent) -> None:
        """Publish a status event to the pub/sub topic.

        Args:
            event: PlaybackStatusEvent to publish
        """
        pub.sendMessage(self.topic, event=event)

    def subscribe(self, listener: Callable[[PlaybackStatusEvent], None]) -> None:
        pub.subscribe(listener, self.topic)

    def unsubscribe(self, listener: Callable[[PlaybackStatusEvent], None]) -> None:
        pub.unsubscribe(listener, self.topic)
