from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union
from uuid import uuid4

# Room status
ROOM_WAITING = 'waiting'
ROOM_ACTIVE = 'active'
ROOM_COMPLETED = 'completed'

# Round status
ROUND_VOTING = 'voting'
ROUND_REVEALED = 'revealed'

DEFAULT_CARD_VALUES = [1, 3, 5, 8, 13, 21]

CardValue = Union[int, float, str]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class RoomSettings:
    """Per-room options.

    `anonymous` keeps voter names out of vote snapshots; votes still carry
    the voter id so clients can show who has voted.
    """

    anonymous: bool = False
    card_values: List[CardValue] = field(default_factory=lambda: list(DEFAULT_CARD_VALUES))

    def with_overrides(self, overrides: Optional[Dict[str, Any]]) -> 'RoomSettings':
        """Return a copy with every recognized key in `overrides` overwritten.

        Keys use the wire names (`anonymous`, `cardValues`); anything else is
        ignored.
        """
        overrides = overrides or {}
        anonymous = self.anonymous
        card_values = list(self.card_values)
        if 'anonymous' in overrides:
            anonymous = bool(overrides['anonymous'])
        if 'cardValues' in overrides:
            card_values = list(overrides['cardValues'])
        return RoomSettings(anonymous=anonymous, card_values=card_values)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'anonymous': self.anonymous,
            'cardValues': list(self.card_values),
        }


@dataclass
class Participant:
    id: str
    name: str
    is_creator: bool = False
    connected_at: datetime = field(default_factory=utcnow)
    is_online: bool = True
    socket_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'isCreator': self.is_creator,
            'connectedAt': _iso(self.connected_at),
            'isOnline': self.is_online,
            'socketId': self.socket_id,
        }


@dataclass
class Vote:
    user_id: str
    # Name at submission time; later renames are not reflected
    user_name: str
    value: CardValue
    voted_at: datetime = field(default_factory=utcnow)

    def to_dict(self, hide_value: bool = False, hide_name: bool = False) -> Dict[str, Any]:
        return {
            'userId': self.user_id,
            'userName': None if hide_name else self.user_name,
            'value': None if hide_value else self.value,
            'votedAt': _iso(self.voted_at),
        }


@dataclass
class Round:
    id: str
    name: str
    status: str = ROUND_VOTING
    # participant id -> Vote, one entry per participant
    votes: Dict[str, Vote] = field(default_factory=dict)
    revealed_at: Optional[datetime] = None

    def reset(self) -> None:
        self.status = ROUND_VOTING
        self.votes.clear()
        self.revealed_at = None

    def to_dict(self, hide_pending_votes: bool = True, anonymous: bool = False) -> Dict[str, Any]:
        hide = hide_pending_votes and self.status == ROUND_VOTING
        return {
            'id': self.id,
            'name': self.name,
            'status': self.status,
            'votes': [v.to_dict(hide_value=hide, hide_name=anonymous) for v in self.votes.values()],
            'revealedAt': _iso(self.revealed_at),
        }


@dataclass
class Room:
    id: str
    created_by: str
    rounds: List[Round]
    participants: List[Participant]
    settings: RoomSettings = field(default_factory=RoomSettings)
    name: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    current_round_index: int = 0
    status: str = ROOM_WAITING

    @property
    def current_round(self) -> Optional[Round]:
        if 0 <= self.current_round_index < len(self.rounds):
            return self.rounds[self.current_round_index]
        return None

    @property
    def is_last_round(self) -> bool:
        return self.current_round_index >= len(self.rounds) - 1

    def get_participant(self, user_id: Optional[str]) -> Optional[Participant]:
        for p in self.participants:
            if p.id == user_id:
                return p
        return None

    def find_participant_by_name(self, name: str) -> Optional[Participant]:
        for p in self.participants:
            if p.name == name:
                return p
        return None

    def find_participant_by_socket(self, sid: str) -> Optional[Participant]:
        for p in self.participants:
            if p.socket_id is not None and p.socket_id == sid:
                return p
        return None

    def to_dict(self, hide_pending_votes: bool = True) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'createdBy': self.created_by,
            'createdAt': _iso(self.created_at),
            'settings': self.settings.to_dict(),
            'rounds': [
                r.to_dict(hide_pending_votes=hide_pending_votes, anonymous=self.settings.anonymous)
                for r in self.rounds
            ],
            'currentRoundIndex': self.current_round_index,
            'status': self.status,
            'participants': [p.to_dict() for p in self.participants],
        }

    def summary(self) -> Dict[str, Any]:
        current = self.current_round
        return {
            'id': self.id,
            'name': self.name,
            'status': self.status,
            'createdAt': _iso(self.created_at),
            'participantCount': len(self.participants),
            'onlineCount': sum(1 for p in self.participants if p.is_online),
            'roundCount': len(self.rounds),
            'currentRoundIndex': self.current_round_index,
            'currentRound': current.name if current else None,
        }
