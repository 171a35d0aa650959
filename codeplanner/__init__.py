"""Plan, review and execute multi-file code edits with a generative model."""

__version__ = "0.1.0"
