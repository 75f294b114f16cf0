"""
Command implementations for profilekit.

This package contains the directory walker and the batch tools built on it
(renumbering, media renaming, CBZ packaging) as well as the profile updater
and the environment installer.
"""
