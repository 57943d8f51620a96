"""
Request and response schemas for the Academy API.
"""
