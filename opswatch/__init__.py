"""opswatch: live watcher state synchronization for the operations dashboard."""

__version__ = "0.1.0"
