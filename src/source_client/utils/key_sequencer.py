"""Time-based key generation for wildcard key patterns using Pendulum."""

from collections.abc import Callable

import pendulum
from pendulum import DateTime

WILDCARD = "?"

# YYYYMMDDhhmmss.mmm, so lexical order follows chronological order
SEQUENCE_FORMAT = "YYYYMMDDHHmmss.SSS"


class KeySequencer:
    """Replaces the wildcard in a key pattern with the current UTC time.

    Two resolutions within the same millisecond produce the same key;
    callers needing strict uniqueness must not rely on the wildcard alone.
    """

    def __init__(self, clock: Callable[[], DateTime] | None = None):
        """Initialize with an optional clock override.

        Args:
            clock: Callable returning the current time (defaults to UTC now)
        """
        self.clock = clock or (lambda: pendulum.now("UTC"))

    def sequence(self) -> str:
        """Get the current sequence value."""
        return self.clock().in_timezone("UTC").format(SEQUENCE_FORMAT)

    def resolve(self, pattern: str) -> str:
        """Replace the first wildcard in the pattern; other patterns pass through."""
        if WILDCARD not in pattern:
            return pattern
        return pattern.replace(WILDCARD, self.sequence(), 1)


_default = KeySequencer()


def resolve_key(pattern: str) -> str:
    """Resolve a key pattern with the default UTC clock."""
    return _default.resolve(pattern)
