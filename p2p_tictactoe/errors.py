from __future__ import annotations


class ProtocolError(ValueError):
    """Base class for recoverable game/protocol errors.

    Everything here is reported back to the local player (or dropped, for inbound
    traffic); none of these is fatal to the process.
    """


class OutOfRange(ProtocolError):
    def __init__(self, row: int, col: int) -> None:
        super().__init__(f"Coordinates ({row}, {col}) are outside the 3x3 board")
        self.row = row
        self.col = col


class Occupied(ProtocolError):
    def __init__(self, row: int, col: int) -> None:
        super().__init__(f"Field ({row}, {col}) is already occupied, choose a different one")
        self.row = row
        self.col = col


class NotYourTurn(ProtocolError):
    def __init__(self, message: str = "It is not your turn, waiting for opponent") -> None:
        super().__init__(message)


class NotInitiated(ProtocolError):
    def __init__(self, message: str = "No game session has been initiated") -> None:
        super().__init__(message)


class SessionInProgress(ProtocolError):
    def __init__(self, message: str = "A game session is already in progress; reset it first") -> None:
        super().__init__(message)


class GameConcluded(ProtocolError):
    def __init__(self, message: str = "Game is over; reset to play again") -> None:
        super().__init__(message)


class UnknownPeer(ProtocolError):
    def __init__(self, peer: str) -> None:
        super().__init__(f"Unknown peer: {peer}")
        self.peer = peer


class UnboundMessage(ProtocolError):
    """Inbound message that does not belong to the current session (wrong sender or token)."""


class MalformedMessage(ProtocolError):
    """Inbound payload matched none of the known wire shapes."""
