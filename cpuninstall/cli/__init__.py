"""Command line interface for cpuninstall."""
