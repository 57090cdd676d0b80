"""Entity resolution and aggregation engine for the kudos dashboard."""

__version__ = "0.1.0"
