"""
profilekit - Core Package

Shell-environment utilities: sequential renumbering, media renaming,
CBZ packaging, profile script updates and environment bootstrap.
"""

__version__ = "0.1.0"
__author__ = "profilekit contributors"
