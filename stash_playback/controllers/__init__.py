"""Core controllers of the playback engine."""
