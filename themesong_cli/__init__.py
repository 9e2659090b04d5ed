"""
themesong-cli: downloads and normalizes theme songs for a TV show library.
"""

__version__ = "1.0.0"
