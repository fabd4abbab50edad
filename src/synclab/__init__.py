"""SyncLab lip-sync dubbing engine."""

__version__ = "1.0.0"
