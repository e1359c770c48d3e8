"""Service modules - Business logic layer"""
from .paf_service import PafService, DEFAULT_TEMPLATES

__all__ = [
    "PafService",
    "DEFAULT_TEMPLATES",
]
