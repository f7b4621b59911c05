"""Batching writer for collected points."""

from .writer import Writer

__all__ = ["Writer"]
