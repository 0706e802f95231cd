"""Workload Arbiter -- recipes, task agents and revertible system configuration."""

__version__ = "0.1.0"
