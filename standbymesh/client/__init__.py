"""
Client module: in-process runner that keeps one client's session alive.
"""

from standbymesh.client.runner import ClientRunner, ReceivedMessage

__all__ = [
    "ClientRunner",
    "ReceivedMessage",
]
