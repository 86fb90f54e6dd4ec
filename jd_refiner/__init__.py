"""Feedback-driven refinement of job-description packages."""

__version__ = "0.1.0"
