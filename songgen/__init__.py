"""Personalized song generation: lyrics, music provider orchestration, freemium quota."""

__version__ = "0.3.0"
