"""SkillHub: skill import pipeline and content-addressed resource store."""

__version__ = "0.1.0"
