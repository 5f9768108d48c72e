"""CHOREBOARD: recurring chore scheduling and Kanban board engine."""

__version__ = "1.0.0"
