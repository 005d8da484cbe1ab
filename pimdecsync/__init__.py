"""
DecSync resource for PIM collections.
"""
__version__ = "0.1.0"
