"""Command line tools for the job engine."""
