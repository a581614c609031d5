"""
API routes package
"""
from roadside.api.routes import claims, policies, providers, websocket

__all__ = [
    "claims",
    "policies",
    "providers",
    "websocket",
]
