"""Content lifecycle engine: workflow, quality gate, scheduling, history and audit."""

__version__ = "0.1.0"
