"""
Academy backend: course catalog, enrollment, timed tests and gamification.
"""

__version__ = "1.0.0"
