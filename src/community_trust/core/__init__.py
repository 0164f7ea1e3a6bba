# src/community_trust/core/__init__.py
"""Configuration, security and error primitives."""
