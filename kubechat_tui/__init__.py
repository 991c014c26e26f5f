"""Terminal chat interface for a Kubernetes assistant agent."""

__version__ = "0.1.0"