"""Multi-agent task orchestration: decompose, schedule, execute, aggregate."""

__version__ = "0.1.0"
