"""Engine event publication."""

from overseer.events.bus import BusMessage, EventBus, Handler, Topic

__all__ = ["BusMessage", "EventBus", "Handler", "Topic"]
