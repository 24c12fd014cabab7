"""draftsmith - job description to personalized proposal draft."""

from draftsmith.version import __version__

__all__ = ["__version__"]
