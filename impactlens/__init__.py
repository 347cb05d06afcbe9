"""ImpactLens - visibility vs. impact analytics for project teams."""

__version__ = "0.1.0"
