"""convcheck - naming and placement conventions checker for game projects."""

__version__ = "0.1.0"
