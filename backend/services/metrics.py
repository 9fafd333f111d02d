"""
Metrics sinks passed into services.

Services never reach for a global counter; whoever builds a service hands it
a sink.
"""

from collections import Counter
from typing import Protocol, Tuple


class MetricsSink(Protocol):
    """Anything that can count named events."""

    def increment(self, name: str, **tags: str) -> None:
        ...


class NullMetricsSink:
    """Discards every event."""

    def increment(self, name: str, **tags: str) -> None:
        return None


class InMemoryMetricsSink:
    """Counts events per name and tag set."""

    def __init__(self):
        self.counts: Counter = Counter()

    def increment(self, name: str, **tags: str) -> None:
        self.counts[(name, self._tag_key(tags))] += 1

    def count(self, name: str, **tags: str) -> int:
        """Events recorded under name; with tags, only that exact tag set."""
        if tags:
            return self.counts[(name, self._tag_key(tags))]
        return sum(value for (key, _), value in self.counts.items() if key == name)

    @staticmethod
    def _tag_key(tags: dict) -> Tuple[Tuple[str, str], ...]:
        return tuple(sorted((key, str(value)) for key, value in tags.items()))
