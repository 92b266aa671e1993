"""Basketball scouting API: NBA data aggregation and scouting reports."""

__version__ = "1.0.0"
