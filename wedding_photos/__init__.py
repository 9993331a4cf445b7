"""
Wedding Photos API: guests upload straight to a shared Google Photos library.
"""
__version__ = "1.0.0"
