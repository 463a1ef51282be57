import logging
import threading
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from planit.models import (
    ROOM_ACTIVE,
    ROOM_COMPLETED,
    ROOM_WAITING,
    ROUND_REVEALED,
    ROUND_VOTING,
    CardValue,
    Participant,
    Room,
    RoomSettings,
    Round,
    Vote,
    new_id,
    utcnow,
)

logger = logging.getLogger(__name__)


class RoomStore:
    """Owner of every room, round, participant and vote record.

    Operations are synchronous and in-memory. Each one checks what it needs
    before it mutates anything, so a call that returns None has left the room
    untouched. The store trusts its caller: payload validation and host
    authorization happen in the socket gateway.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._rooms: Dict[str, Room] = {}
        self._clock = clock or utcnow
        self._lock = threading.RLock()

    # ---- Lifecycle ----

    def create_room(
        self,
        user_name: str,
        round_names: Sequence[str],
        room_name: Optional[str] = None,
        settings: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Room, str]:
        """Create a room with `user_name` as its host.

        Returns `(room, creator_id)`. One round is built per entry of
        `round_names`, all in voting state with no votes.
        """
        now = self._clock()
        user_id = new_id()
        creator = Participant(
            id=user_id,
            name=user_name,
            is_creator=True,
            connected_at=now,
            is_online=True,
        )
        room = Room(
            id=new_id(),
            name=room_name,
            created_by=user_id,
            created_at=now,
            settings=RoomSettings().with_overrides(settings),
            rounds=[Round(id=new_id(), name=name) for name in round_names],
            participants=[creator],
        )
        with self._lock:
            self._rooms[room.id] = room
        logger.info(f"[room-create] room={room.id} host={user_name} rounds={len(room.rounds)}")
        return room, user_id

    def get_room(self, room_id: Optional[str]) -> Optional[Room]:
        with self._lock:
            return self._rooms.get(room_id)

    def all_rooms(self) -> List[Room]:
        with self._lock:
            return list(self._rooms.values())

    def snapshot(self, room_id: Optional[str]) -> Optional[Dict[str, Any]]:
        """Serialize a room and its all-voted flag under the store lock."""
        with self._lock:
            room = self._rooms.get(room_id)
            if not room:
                return None
            return {'room': room.to_dict(), 'allVoted': self.all_voted(room_id)}

    def summaries(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [room.summary() for room in self._rooms.values()]

    def delete_room(self, room_id: str) -> bool:
        with self._lock:
            removed = self._rooms.pop(room_id, None) is not None
        if removed:
            logger.info(f"[room-delete] room={room_id}")
        return removed

    def expire_rooms(self, max_age: timedelta, now: Optional[datetime] = None) -> List[str]:
        """Delete every room older than `max_age`; return the deleted ids."""
        now = now or self._clock()
        with self._lock:
            expired = [rid for rid, room in self._rooms.items() if now - room.created_at > max_age]
            for rid in expired:
                del self._rooms[rid]
        for rid in expired:
            logger.info(f"[room-expire] room={rid}")
        return expired

    # ---- Membership and presence ----

    def join_room(self, room_id: str, user_name: str, user_id: Optional[str] = None) -> Optional[Tuple[Room, str]]:
        """Add `user_name` to a room, or rejoin an existing participant.

        A known `user_id` wins; otherwise a participant with the same name is
        treated as the same person. Either way the participant is marked
        online and keeps its id.
        """
        with self._lock:
            room = self._rooms.get(room_id)
            if not room:
                return None

            existing = room.get_participant(user_id) if user_id else None
            if existing is None:
                existing = room.find_participant_by_name(user_name)
            if existing:
                existing.is_online = True
                logger.info(f"[rejoin] room={room_id} user={existing.id} name={existing.name}")
                return room, existing.id

            participant = Participant(
                id=new_id(),
                name=user_name,
                is_creator=False,
                connected_at=self._clock(),
                is_online=True,
            )
            room.participants.append(participant)
            logger.info(f"[join] room={room_id} user={participant.id} name={user_name}")
            return room, participant.id

    def remove_participant(self, room_id: str, user_id: str) -> Optional[Room]:
        """Drop a non-host participant and their vote in the current round."""
        with self._lock:
            room = self._rooms.get(room_id)
            if not room:
                return None
            participant = room.get_participant(user_id)
            if not participant or participant.is_creator:
                return None
            room.participants = [p for p in room.participants if p.id != user_id]
            current = room.current_round
            if current and current.status == ROUND_VOTING:
                current.votes.pop(user_id, None)
            logger.info(f"[leave] room={room_id} user={user_id}")
            return room

    def bind_connection(self, room_id: str, user_id: str, sid: str) -> Optional[Room]:
        """Mark a participant online on connection `sid`.

        A later bind for the same participant replaces the earlier one, and a
        connection is bound to at most one participant per room: whoever held
        `sid` before goes offline. Unknown participants leave the room
        untouched.
        """
        with self._lock:
            room = self._rooms.get(room_id)
            if not room:
                return None
            participant = room.get_participant(user_id)
            if participant:
                for other in room.participants:
                    if other is not participant and other.socket_id == sid:
                        other.is_online = False
                        other.socket_id = None
                participant.is_online = True
                participant.socket_id = sid
            return room

    def unbind_connection(self, room_id: str, sid: str) -> Optional[Room]:
        """Mark whoever is bound to `sid` offline. None when nobody was."""
        with self._lock:
            room = self._rooms.get(room_id)
            if not room:
                return None
            participant = room.find_participant_by_socket(sid)
            if not participant:
                return None
            participant.is_online = False
            participant.socket_id = None
            logger.info(f"[offline] room={room_id} user={participant.id} name={participant.name}")
            return room

    # ---- Voting ----

    def _open_round(self, room: Room) -> Optional[Round]:
        if room.status == ROOM_COMPLETED:
            return None
        return room.current_round

    def submit_vote(self, room_id: str, user_id: str, value: CardValue) -> Optional[Room]:
        """Record `value` as the participant's vote in the current round.

        Re-voting overwrites the previous value. When everyone has voted in a
        room still `waiting`, the room becomes `active`. Nothing is revealed.
        """
        with self._lock:
            room = self._rooms.get(room_id)
            if not room:
                return None
            current = self._open_round(room)
            if not current:
                return None
            participant = room.get_participant(user_id)
            if not participant:
                return None

            current.votes[user_id] = Vote(
                user_id=user_id,
                user_name=participant.name,
                value=value,
                voted_at=self._clock(),
            )
            logger.info(f"[vote] room={room_id} round={current.id} user={user_id}")

            if len(current.votes) == len(room.participants) and room.status == ROOM_WAITING:
                room.status = ROOM_ACTIVE
            return room

    def all_voted(self, room_id: str) -> bool:
        with self._lock:
            room = self._rooms.get(room_id)
            if not room:
                return False
            current = room.current_round
            if not current:
                return False
            return len(current.votes) == len(room.participants)

    def reveal_votes(self, room_id: str) -> Optional[Room]:
        with self._lock:
            room = self._rooms.get(room_id)
            if not room:
                return None
            current = self._open_round(room)
            if not current:
                return None
            current.status = ROUND_REVEALED
            current.revealed_at = self._clock()
            logger.info(f"[reveal] room={room_id} round={current.id} votes={len(current.votes)}")
            return room

    def next_round(self, room_id: str) -> Optional[Room]:
        """Advance the round cursor, or complete the room after the last round.

        Advancing does not look at votes, so this is also how a round gets
        skipped. A completed room is returned as is.
        """
        with self._lock:
            room = self._rooms.get(room_id)
            if not room:
                return None
            if room.status == ROOM_COMPLETED:
                return room
            if room.is_last_round:
                room.status = ROOM_COMPLETED
                logger.info(f"[finish] room={room_id} finished at round={room.current_round_index}")
                return room
            prev_index = room.current_round_index
            room.current_round_index += 1
            room.current_round.reset()
            logger.info(f"[next-round] room={room_id} advance round {prev_index} -> {room.current_round_index}")
            return room

    # ---- Settings ----

    def update_settings(self, room_id: str, overrides: Dict[str, Any]) -> Optional[Room]:
        with self._lock:
            room = self._rooms.get(room_id)
            if not room:
                return None
            room.settings = room.settings.with_overrides(overrides)
            logger.info(f"[settings] room={room_id} settings={room.settings.to_dict()}")
            return room
