"""
FastAPI job server for gov-ai.
"""
