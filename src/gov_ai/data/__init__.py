"""
Bundled report schema and example principles.
"""
