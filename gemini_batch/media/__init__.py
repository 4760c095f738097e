"""Local media discovery and audio extraction."""
