"""USB boot tool for the ChinaChip CC1800 system-on-chip."""

__version__ = "1.0.0"
