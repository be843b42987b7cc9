"""
Interface definitions for gitview.

Available Interfaces:
    IProcessRunner: External git invocation interface
    IGitService: Repository operation facade interface
"""

from gitview.interfaces.runner import IProcessRunner
from gitview.interfaces.service import IGitService

__all__ = [
    "IProcessRunner",
    "IGitService",
]
