"""Core gameplay primitives (board engine and internal session events).

Kept free of transport and FastAPI concerns so it can be reused by the router, CLI, and tests.
"""
