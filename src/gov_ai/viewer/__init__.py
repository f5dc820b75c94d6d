"""
Read-only HTML viewer for saved reports.
"""

from gov_ai.viewer.app import create_viewer_app

__all__ = ["create_viewer_app"]
