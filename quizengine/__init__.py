"""Quiz assessment engine: timed attempts, grading and reporting."""

__version__ = "1.0.0"
