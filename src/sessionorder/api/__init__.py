"""
SessionOrder REST API.

Usage:
    uvicorn sessionorder.api.main:app
"""
