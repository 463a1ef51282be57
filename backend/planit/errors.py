"""Errors reported back to the connection that triggered them.

Anything raised from this module is an expected rejection: the gateway turns
it into an ack (`{success: False, error}`) or an `error` event for the caller
only. It is never broadcast to a room.
"""


class PlanitError(Exception):
    """Base class for rejected actions."""
    pass


class ValidationError(PlanitError):
    """Payload is missing a required field or carries a malformed one."""
    pass


class NotFoundError(PlanitError):
    pass


class RoomNotFound(NotFoundError):
    def __init__(self, room_id):
        self.room_id = room_id
        super().__init__('Room not found')


class ParticipantNotFound(NotFoundError):
    def __init__(self, user_id):
        self.user_id = user_id
        super().__init__('Participant not found in this room')


class AuthorizationError(PlanitError):
    """A non-host invoked a host-only action."""
    pass


class InvalidStateTransition(PlanitError):
    """The room or round is not in a state that accepts the action."""
    pass
