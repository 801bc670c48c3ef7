"""StoryLoom — agents weave private memories into one negotiated story."""

__version__ = "0.1.0"
