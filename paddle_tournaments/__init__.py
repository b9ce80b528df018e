"""Tournament bracket engine for the paddle matchmaking platform."""

__version__ = "0.1.0"
