"""
Data models for profilekit.

This module contains the configuration models and the operation/result
structures shared by the commands.
"""

from .config import ToolkitConfig
from .operations import EntryKind, EntryMatch, RenameOperation, RenamePlan, OperationReport

__all__ = ['ToolkitConfig', 'EntryKind', 'EntryMatch', 'RenameOperation', 'RenamePlan', 'OperationReport']
