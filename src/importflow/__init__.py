"""Progress tracking for multi-stage bulk import pipelines."""

__version__ = "0.1.0"
