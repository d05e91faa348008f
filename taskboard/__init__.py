"""Project boards: cached snapshots, optimistic drag-and-drop and progress tracking over a remote store."""

__version__ = "0.1.0"
