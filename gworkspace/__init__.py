"""Host runtime for the Google Workspace plugins."""

__version__ = "0.1.0"
