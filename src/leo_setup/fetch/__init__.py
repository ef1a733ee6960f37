"""Source-control access."""

from .git import CloneResult, GitRemote, SourceRemote

__all__ = ["CloneResult", "GitRemote", "SourceRemote"]
