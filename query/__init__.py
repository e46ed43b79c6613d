"""
Query module for recent location readings.
"""

from query.service import QueryService

__all__ = ["QueryService"]
