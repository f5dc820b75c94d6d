"""
API route modules.
"""

from gov_ai.api.routes import jobs

__all__ = ["jobs"]
