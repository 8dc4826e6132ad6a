"""
Type definitions used across layers
"""

from enum import StrEnum


class Color(StrEnum):
    WHITE = "white"
    BLACK = "black"


class TerminationReason(StrEnum):
    """Why a game stopped. NONE while the game is still being played."""

    NONE = "none"
    CHECKMATE = "checkmate"
    STALEMATE = "stalemate"
    THREEFOLD_REPETITION = "threefold_repetition"
    INSUFFICIENT_MATERIAL = "insufficient_material"
    DRAW_OTHER = "draw_other"


class RejectionReason(StrEnum):
    NOT_YOUR_TURN = "not_your_turn"
    ILLEGAL_MOVE = "illegal_move"
    GAME_OVER = "game_over"


class RoomStatus(StrEnum):
    WAITING = "waiting"
    PLAYING = "playing"
    FINISHED = "finished"


class ParticipantRole(StrEnum):
    HOST = "host"
    PLAYER = "player"
    SPECTATOR = "spectator"


class RoomAvailability(StrEnum):
    """Display status, derived from a room snapshot. Never stored."""

    PLAYING = "playing"
    FULL = "full"
    SPECTATORS_FULL = "spectators_full"
    AVAILABLE = "available"


class JoinOutcome(StrEnum):
    JOINED = "joined"
    ALREADY_JOINED = "already_joined"
    ALREADY_SPECTATING = "already_spectating"
    ROOM_UNAVAILABLE = "room_unavailable"
    SPECTATORS_FULL = "spectators_full"
    INVALID_CODE = "invalid_code"
    IS_HOST = "is_host"
    TIMED_OUT = "timed_out"
    NOT_FOUND = "not_found"


class ChangeType(StrEnum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class SubscriptionStatus(StrEnum):
    # Same spelling as the hosted realtime backends report them
    SUBSCRIBED = "SUBSCRIBED"
    CHANNEL_ERROR = "CHANNEL_ERROR"
    TIMED_OUT = "TIMED_OUT"
    CLOSED = "CLOSED"


class ConnectionState(StrEnum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    RECONNECTING = "reconnecting"
