"""NBA pick ranking: schedule/odds normalization, matching, scoring, selection."""

__version__ = "0.1.0"
