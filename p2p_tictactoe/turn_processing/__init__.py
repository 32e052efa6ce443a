"""Turn/action processing helpers.

This package centralizes validation so local moves and inbound messages
flow through the same pipeline and show up consistently in logs.
"""
