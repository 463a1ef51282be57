"""Room domain services: the in-memory room store and its expiration sweep.

Socket handlers and HTTP routes go through these instead of touching room
records themselves, keeping transport concerns separated from the room state
machine.
"""

from .store import RoomStore

__all__ = ['RoomStore']
