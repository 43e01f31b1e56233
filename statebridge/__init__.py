"""Shared settings, workspace state and secrets for every statebridge client."""

__version__ = "0.3.0"
