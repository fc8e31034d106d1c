"""Directory adapters and session handling shared by both pipelines."""

from .directory import DestinationDirectory, SourceDirectory

__all__ = ["DestinationDirectory", "SourceDirectory"]
