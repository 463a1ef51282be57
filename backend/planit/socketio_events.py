from flask_socketio import join_room, leave_room, emit, close_room
from flask import current_app, request
from functools import wraps
from numbers import Number
from typing import Any, Dict, Optional
import threading

from planit.errors import (
    PlanitError,
    ValidationError,
    RoomNotFound,
    ParticipantNotFound,
    AuthorizationError,
    InvalidStateTransition,
)
from planit.models import Room, ROOM_COMPLETED, ROUND_VOTING
from planit.services.rooms import RoomStore


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def request_action(failure_message: str):
    """Wrap a request/ack handler: the return value is the ack payload.

    Expected rejections become `{success: False, error}`; anything else is
    logged and answered with `failure_message`.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(self, data=None):
            try:
                return fn(self, _payload(data))
            except PlanitError as exc:
                current_app.logger.info(f"[{fn.__name__}-rejected] sid={_get_sid()} reason={exc}")
                return {'success': False, 'error': str(exc)}
            except Exception:
                current_app.logger.exception(f"[{fn.__name__}-failed] sid={_get_sid()}")
                return {'success': False, 'error': failure_message}
        return wrapper
    return decorator


def fire_and_forget(failure_message: str):
    """Wrap a handler without ack: failures go to the caller as `error`."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(self, data=None):
            try:
                fn(self, _payload(data))
            except PlanitError as exc:
                current_app.logger.info(f"[{fn.__name__}-rejected] sid={_get_sid()} reason={exc}")
                emit('error', {'message': str(exc)})
            except Exception:
                current_app.logger.exception(f"[{fn.__name__}-failed] sid={_get_sid()}")
                emit('error', {'message': failure_message})
        return wrapper
    return decorator


# ---- Payload validation ----

def _payload(data) -> Dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Payload must be an object')
    return data


def _require_text(data: Dict[str, Any], key: str, message: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(message)
    return value.strip()


def _optional_text(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _is_card_value(value) -> bool:
    # bool is a Number subclass but never a card
    return isinstance(value, str) or (isinstance(value, Number) and not isinstance(value, bool))


def _validate_round_names(data: Dict[str, Any]):
    names = data.get('roundNames')
    if not isinstance(names, list) or not names:
        raise ValidationError('At least one round is required')
    if not all(isinstance(n, str) and n.strip() for n in names):
        raise ValidationError('Round names must be non-blank text')
    return [n.strip() for n in names]


def _validate_settings(settings) -> Optional[Dict[str, Any]]:
    if settings is None:
        return None
    if not isinstance(settings, dict):
        raise ValidationError('Settings must be an object')
    if 'anonymous' in settings and not isinstance(settings['anonymous'], bool):
        raise ValidationError('Setting "anonymous" must be true or false')
    if 'cardValues' in settings:
        values = settings['cardValues']
        if not isinstance(values, list) or not values:
            raise ValidationError('Card values must be a non-empty list')
        if not all(_is_card_value(v) for v in values):
            raise ValidationError('Card values must be numbers or text')
    return settings


class Gateway:
    """Maps socket.io events onto RoomStore operations and fans out results.

    Every room mutation and the broadcast that follows it run under one lock,
    so each room's subscribers see updates in the order actions were accepted.
    """

    def __init__(self, socketio, store: RoomStore, namespace: str = '/'):
        self.socketio = socketio
        self.store = store
        self.namespace = namespace
        self._lock = threading.RLock()

    def register(self) -> None:
        """Register Socket.IO event handlers on the configured namespace."""
        events = {
            'connect': self.handle_connect,
            'disconnect': self.handle_disconnect,
            'create-room': self.handle_create_room,
            'join-room': self.handle_join_room,
            'submit-vote': self.handle_submit_vote,
            'reveal-votes': self.handle_reveal_votes,
            'next-round': self.handle_next_round,
            'update-settings': self.handle_update_settings,
            'leave-room': self.handle_leave_room,
            'delete-room': self.handle_delete_room,
        }
        for name, handler in events.items():
            self.socketio.on_event(name, handler, namespace=self.namespace)

    # ---- Helpers ----

    def _room_payload(self, room: Room) -> Dict[str, Any]:
        return {'room': room.to_dict(), 'allVoted': self.store.all_voted(room.id)}

    def _broadcast_room(self, room: Room, include_self: bool = True) -> None:
        emit('room-update', self._room_payload(room), to=room.id, include_self=include_self)

    def _resolve_room(self, data: Dict[str, Any]) -> Room:
        room_id = _require_text(data, 'roomId', 'Room ID is required')
        room = self.store.get_room(room_id)
        if not room:
            raise RoomNotFound(room_id)
        return room

    def _resolve_participant(self, room: Room, data: Dict[str, Any]):
        user_id = _require_text(data, 'userId', 'User ID is required')
        participant = room.get_participant(user_id)
        if not participant:
            raise ParticipantNotFound(user_id)
        return participant

    def _resolve_host_action(self, data: Dict[str, Any], action: str) -> Room:
        room = self._resolve_room(data)
        participant = self._resolve_participant(room, data)
        if not participant.is_creator:
            raise AuthorizationError(f'Only the host can {action}')
        return room

    @staticmethod
    def _require_open(room: Room) -> None:
        if room.status == ROOM_COMPLETED:
            raise InvalidStateTransition('This room has completed all of its rounds')

    # ---- Connection lifecycle ----

    def handle_connect(self, auth=None):
        current_app.logger.info(f"[connect] sid={_get_sid()}")

    def handle_disconnect(self, reason=None):
        sid = _get_sid()
        changed = 0
        with self._lock:
            for room in self.store.all_rooms():
                updated = self.store.unbind_connection(room.id, sid)
                if updated:
                    changed += 1
                    emit('room-update', self._room_payload(updated), to=updated.id, namespace=self.namespace)
        current_app.logger.info(f"[disconnect] sid={sid} rooms={changed}")

    # ---- Request/ack actions ----

    @request_action('Failed to create room')
    def handle_create_room(self, data):
        user_name = _require_text(data, 'userName', 'User name is required')
        round_names = _validate_round_names(data)
        settings = _validate_settings(data.get('settings'))
        room_name = _optional_text(data, 'roomName')

        sid = _get_sid()
        with self._lock:
            room, user_id = self.store.create_room(user_name, round_names, room_name=room_name, settings=settings)
            self.store.bind_connection(room.id, user_id, sid)
            join_room(room.id)
            snapshot = room.to_dict()
        current_app.logger.info(f"[room-create] room={room.id} user={user_name} sid={sid}")
        return {'success': True, 'room': snapshot, 'userId': user_id}

    @request_action('Failed to join room')
    def handle_join_room(self, data):
        user_name = _require_text(data, 'userName', 'User name is required')
        room_id = _require_text(data, 'roomId', 'Room ID is required')
        claimed_id = _optional_text(data, 'userId')

        sid = _get_sid()
        with self._lock:
            result = self.store.join_room(room_id, user_name, user_id=claimed_id)
            if not result:
                raise RoomNotFound(room_id)
            room, user_id = result
            self.store.bind_connection(room.id, user_id, sid)
            join_room(room.id)
            participant = room.get_participant(user_id)
            emit('user-joined', {'userId': user_id, 'userName': participant.name}, to=room.id, include_self=False)
            self._broadcast_room(room, include_self=False)
            snapshot = room.to_dict()
        current_app.logger.info(f"[join] room={room.id} user={user_id} sid={sid}")
        return {'success': True, 'room': snapshot, 'userId': user_id}

    # ---- Fire-and-forget actions ----

    @fire_and_forget('Failed to submit vote')
    def handle_submit_vote(self, data):
        if 'vote' not in data or not _is_card_value(data['vote']):
            raise ValidationError('Vote must be a number or text')
        value = data['vote']
        with self._lock:
            room = self._resolve_room(data)
            participant = self._resolve_participant(room, data)
            self._require_open(room)
            if room.current_round.status != ROUND_VOTING:
                raise InvalidStateTransition('Votes for this round have already been revealed')
            if current_app.config.get('ENFORCE_CARD_VALUES', True) and value not in room.settings.card_values:
                raise ValidationError(f'{value!r} is not one of this room\'s card values')
            updated = self.store.submit_vote(room.id, participant.id, value)
            if not updated:
                raise RoomNotFound(room.id)
            self._broadcast_room(updated)

    @fire_and_forget('Failed to reveal votes')
    def handle_reveal_votes(self, data):
        with self._lock:
            room = self._resolve_host_action(data, 'reveal votes')
            self._require_open(room)
            updated = self.store.reveal_votes(room.id)
            if not updated:
                raise RoomNotFound(room.id)
            self._broadcast_room(updated)

    @fire_and_forget('Failed to advance round')
    def handle_next_round(self, data):
        with self._lock:
            room = self._resolve_host_action(data, 'advance to the next round')
            self._require_open(room)
            updated = self.store.next_round(room.id)
            if not updated:
                raise RoomNotFound(room.id)
            self._broadcast_room(updated)

    @fire_and_forget('Failed to update settings')
    def handle_update_settings(self, data):
        settings = _validate_settings(data.get('settings'))
        if not settings:
            raise ValidationError('Settings are required')
        with self._lock:
            room = self._resolve_host_action(data, 'change room settings')
            updated = self.store.update_settings(room.id, settings)
            if not updated:
                raise RoomNotFound(room.id)
            self._broadcast_room(updated)

    @fire_and_forget('Failed to leave room')
    def handle_leave_room(self, data):
        with self._lock:
            room = self._resolve_room(data)
            participant = self._resolve_participant(room, data)
            if participant.is_creator:
                # The host record stays for the life of the room; only presence changes
                updated = self.store.unbind_connection(room.id, _get_sid()) or room
            else:
                updated = self.store.remove_participant(room.id, participant.id)
                if not updated:
                    raise RoomNotFound(room.id)
            leave_room(room.id)
            emit('user-left', {'userId': participant.id, 'userName': participant.name}, to=room.id)
            self._broadcast_room(updated)

    @fire_and_forget('Failed to delete room')
    def handle_delete_room(self, data):
        with self._lock:
            room = self._resolve_host_action(data, 'delete the room')
            emit('room-deleted', {'roomId': room.id}, to=room.id)
            self.store.delete_room(room.id)
            close_room(room.id)
        current_app.logger.info(f"[room-delete] room={room.id} sid={_get_sid()}")
