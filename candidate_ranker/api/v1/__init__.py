"""
API v1 routes
"""
from . import candidates, rankings

__all__ = [
    "candidates",
    "rankings",
]
