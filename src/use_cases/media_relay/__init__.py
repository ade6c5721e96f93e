"""
Server-side answer provider backed by aiortc peer connections.
"""

from .relay_answerer import RelayAnswerer

__all__ = ["RelayAnswerer"]
