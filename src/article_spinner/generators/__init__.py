"""Content generator implementations and factory."""

from .factory import build_generator, register_generator

__all__ = ["build_generator", "register_generator"]
