"""Utility functions for rnamaps.

- Stranded genomic intervals
- Logging configuration

Example:
    >>> from rnamaps.utils.intervals import GenomicInterval
    >>> from rnamaps.utils.logging import setup_logging
"""

from rnamaps.utils.intervals import GenomicInterval

__all__ = [
    "GenomicInterval",
]
