"""Goal pace tracking: focus timer, estimate roll-up and burndown projection."""

__version__ = "0.1.0"
