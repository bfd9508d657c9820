"""
Session authentication and database-model middleware for FastAPI.
"""

__version__ = "1.0.0"
