# backend/studio/routes/__init__.py
"""HTTP routes for the studio scheduling engine."""
