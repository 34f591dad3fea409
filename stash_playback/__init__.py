"""Stash Playback: continuous playback navigation engine for Stash media servers."""

from .engine import PlaybackEngine

__all__ = ["PlaybackEngine"]
