"""Game hangar API: assets, demos, forum and user accounts."""

__version__ = "1.0.0"
