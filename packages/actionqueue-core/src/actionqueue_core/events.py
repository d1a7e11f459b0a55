"""
Registry of externally signaled push events.

A push event is a one-shot sticky flag: once signaled it stays signaled.
PushEventEffect conditions become true when their event id is in the
registry. The registry belongs to an ExecutionContext, so separate
accounts never see each other's events.
"""

from collections.abc import Iterable


class PushEventRegistry:
    """
    Set of signaled event ids.

    Example:
        events = PushEventRegistry()
        events.signal("wyre:order-123:complete")
        events.is_signaled("wyre:order-123:complete")  # True
    """

    def __init__(self, signaled: Iterable[str] = ()) -> None:
        self._signaled: set[str] = set(signaled)

    def signal(self, event_id: str) -> bool:
        """
        Mark an event as signaled.

        Returns:
            True if the event was not signaled before
        """
        if event_id in self._signaled:
            return False
        self._signaled.add(event_id)
        return True

    def update(self, event_ids: Iterable[str]) -> int:
        """Signal many events at once, returning how many were new."""
        return sum(1 for event_id in event_ids if self.signal(event_id))

    def is_signaled(self, event_id: str) -> bool:
        return event_id in self._signaled

    @property
    def signaled_ids(self) -> frozenset[str]:
        return frozenset(self._signaled)
