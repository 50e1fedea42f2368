"""cuesync: caption cue synthesis and playback sync."""

__version__ = "0.1.0"
