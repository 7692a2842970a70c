"""Settings loading for the notification processor."""
