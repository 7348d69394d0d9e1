"""
Utility modules for core functionality.

Modules:
- decorators: Utility decorators and context managers (timer, etc.)
"""

from .decorators import timer

__all__ = ["timer"]
