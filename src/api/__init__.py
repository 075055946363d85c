"""
API module for FastAPI routes.

This module organizes all API endpoints by feature.
Each route module defines a FastAPI APIRouter that is
mounted on the main application in ``api.app``.
"""
