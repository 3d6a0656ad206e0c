"""TaskFlow: personal task manager with an optimistic, live-synced task cache."""

__version__ = "0.1.0"
