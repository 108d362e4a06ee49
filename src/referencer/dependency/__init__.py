"""Dependency ordering between entity kinds."""

from .graph import KindGraph, KindNode, resolution_order

__all__ = ["KindGraph", "KindNode", "resolution_order"]
