"""Configuration for the conversation memory layer."""

from .settings import Settings

__all__ = ["Settings"]
