"""State layer.

The live-position cache is the only mutable shared state in the core.
The hub is its sole writer.
"""
