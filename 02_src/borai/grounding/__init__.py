"""Grounding module."""

from .aggregator import GroundingAggregator, accumulate

__all__ = ["GroundingAggregator", "accumulate"]
