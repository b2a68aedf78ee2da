"""Rota planner: weekly shift scheduling with live sync, week copy and CSV export."""

__version__ = "1.0.0"
