class NotificationError(Exception):
    """A notifier could not deliver its message."""
