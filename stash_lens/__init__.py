"""
stash-lens package.

This package exposes git stashes as a repository -> stash -> file
hierarchy, resolves the historical content of stashed files and wraps
the git stash operations (create, pop, apply, drop, branch, clear).
"""

__version__ = "0.1.0"
