"""
SkyWatch host service: FastAPI app exposing the flight engine.
"""
