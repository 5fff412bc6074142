"""Version information for statelock."""

__version__ = "0.4.0"
