"""Various (server-side) helpers for Stash Playback."""
