"""Kanban board backend: boards, ordered columns and ordered cards."""

__version__ = "1.0.0"
