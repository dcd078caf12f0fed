"""turnstream: streaming response coordinator for LLM chat turns."""

__version__ = "0.1.0"
