"""
clinicsched - clinical appointment scheduling domain.
"""

__version__ = "0.1.0"
