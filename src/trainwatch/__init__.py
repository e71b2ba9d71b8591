"""trainwatch: track whether a merged change has reached each deployment environment."""

__version__ = "0.1.0"
