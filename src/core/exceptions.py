"""
Custom exceptions.

GameError is the root, so the layer above can catch anything raised on purpose by this package with a single except clause.
"""


class GameError(Exception):
    """Base class of all errors raised deliberately by this package."""


# --- VALIDATION (detected locally, before the store is touched) ---
class InvalidRequestError(GameError):
    """Request data could not be interpreted (room name, squares, username, ...)."""


class InvalidFENError(GameError):
    """String is not a valid FEN record."""


class GameStateError(GameError):
    """Operation is not allowed in the current state of the game."""


# --- STORE ---
class RepositoryError(GameError):
    """Requested record does not exist."""


class RoomNotFoundError(RepositoryError):
    """Room with the given ID does not exist."""


class StoreError(GameError):
    """The persistent store failed (connection lost, constraint we did not expect, ...). Opaque to the UI."""


class ParticipantConflictError(GameError):
    """Unique constraint: the user already has an active participation in the room."""


class AtomicJoinUnavailableError(GameError):
    """The store cannot run the single-transaction seat claim. Caller falls back to the two-step protocol."""


# --- SESSION ---
class SessionExpiredError(GameError):
    """No authenticated identity. The UI should send the user back to sign in."""
