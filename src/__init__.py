"""
HomeMatch Vibes - Core Package

This package contains the vibes backfill pipeline for the HomeMatch listing app,
including data access, LLM generation clients, image refresh and resumable runners.
"""

__version__ = "0.1.0"
