"""Outbound notification delivery."""

from logtree_cloud.notifications.sender import HttpNotifier, Notifier

__all__ = ["HttpNotifier", "Notifier"]
