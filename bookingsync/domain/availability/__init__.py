"""Availability domain - month, day and range views of Acuity availability"""

from .router import router

__all__ = ["router"]
