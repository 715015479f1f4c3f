"""
tabroom
Debate tournament scheduling and allocation engine.
"""

__version__ = "1.0.0"
