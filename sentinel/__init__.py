"""Dera protocol sentinel — health monitoring, alerting and emergency pause."""

__version__ = "0.1.0"
