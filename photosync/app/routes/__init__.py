"""
FastAPI Routes.

API 라우트 (REST)
"""

from . import passes

__all__ = ["passes"]
