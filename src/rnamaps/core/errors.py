"""Exceptions raised by the RNA-map pipeline."""

from __future__ import annotations


class RNAMapError(ValueError):
    """Base class for RNA-map pipeline errors."""

    pass


class MalformedEventError(RNAMapError):
    """Raised when an event's annotation doesn't fit the cassette-exon layout."""

    def __init__(self, event_id: str, reason: str) -> None:
        self.event_id = event_id
        self.reason = reason
        super().__init__(f"Malformed event {event_id!r}: {reason}")


class InsufficientPoolError(RNAMapError):
    """Raised when a quantile bin holds fewer controls than requested."""

    def __init__(self, bin_index: int, requested: int, available: int) -> None:
        self.bin_index = bin_index
        self.requested = requested
        self.available = available
        super().__init__(
            f"Quantile bin {bin_index} holds {available} control events, "
            f"{requested} requested"
        )


class InsufficientDataError(RNAMapError):
    """Raised when a positional bin has no usable values on one side."""

    def __init__(self, start: int, n_treatment: int, n_control: int) -> None:
        self.start = start
        self.n_treatment = n_treatment
        self.n_control = n_control
        super().__init__(
            f"Bin starting at position {start} has {n_treatment} treatment and "
            f"{n_control} control values; rank-sum test is undefined"
        )
