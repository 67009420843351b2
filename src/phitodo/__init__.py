"""phitodo: a local task manager that keeps GitHub work and Toggl time in view."""

__version__ = "0.1.0"
