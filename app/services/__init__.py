"""
Services module for the planning poker backend.

Contains the room and vote operations composed from the storage layer.
"""
from app.services.room_service import RoomService

__all__ = [
    "RoomService"
]
