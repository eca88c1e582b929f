"""Event discovery-to-publish pipeline for sales intelligence."""

__version__ = "0.1.0"
