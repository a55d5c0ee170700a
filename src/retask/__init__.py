# src/retask/__init__.py

"""retask: task reminders with lead-time alarms and an upcoming-tasks summary."""

__version__ = "0.1.0"
