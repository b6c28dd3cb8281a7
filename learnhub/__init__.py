"""LearnHub course and video platform backend."""

__version__ = "1.0.0"
