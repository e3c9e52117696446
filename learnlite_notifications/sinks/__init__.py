"""Delivery sinks and the configuration-driven sink factory."""

from learnlite_notifications.core.config import NotificationSettings, SinkKind
from learnlite_notifications.sinks.base import Sink
from learnlite_notifications.sinks.console import ConsoleSink
from learnlite_notifications.sinks.file import FileSink


def build_sink(settings: NotificationSettings) -> Sink:
    """Create the sink selected by ``NOTIFICATIONS_SINK``.

    Selection happens once, at worker construction; a running worker never
    switches sinks.
    """
    if settings.sink is SinkKind.FILE:
        return FileSink(settings.log_file)
    return ConsoleSink()


__all__ = ["Sink", "ConsoleSink", "FileSink", "build_sink"]
