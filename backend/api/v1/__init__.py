"""
API v1 modules
"""

from . import peers

__all__ = ["peers"]
