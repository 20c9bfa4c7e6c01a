"""Image search providers and factory."""

from .factory import build_image_provider, register_image_provider

__all__ = ["build_image_provider", "register_image_provider"]
