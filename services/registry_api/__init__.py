"""BGME Battle Themes - Registry API service.

FastAPI service exposing registered songs per package and queueing
registration passes.
"""

__all__: list[str] = []
