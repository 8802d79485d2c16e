"""Configuration package: environment-driven :class:`Settings`."""

from complyx.config.settings import Settings

__all__ = ["Settings"]
