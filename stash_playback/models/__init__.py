"""Models used by Stash Playback."""
