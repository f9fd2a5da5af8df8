"""
Remote API Clients

- auth.py - SNWS2 request signing
- client.py - Command queue and most-recent reading clients
"""

from .auth import AuthorizationV2Builder
from .client import ApiClient, CommandApi, ReadingApi

__all__ = ["AuthorizationV2Builder", "ApiClient", "CommandApi", "ReadingApi"]
