"""Version information for cpuninstall."""

__version__ = "1.0.0"
