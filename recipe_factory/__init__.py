"""
Recipe Factory

A recipe execution engine: streams declarative JSON recipes, resolves
scripted values and applies each step through pluggable step handlers,
within tenant execution scopes.
"""

__version__ = "1.0.0"
__author__ = "Recipe Factory Team"
