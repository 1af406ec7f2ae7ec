"""Walking tour planner: place search, deduplication and route ordering."""

__version__ = "0.1.0"
