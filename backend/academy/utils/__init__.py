"""
Helpers shared by the routers: level arithmetic, grading, the test
timer and access checks.
"""
