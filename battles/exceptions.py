"""Domain errors raised by the battle system."""


class BattleError(Exception):
    """Base class for battle domain errors surfaced to callers."""


class NoActiveBattleError(BattleError):
    def __init__(self, message: str = "No active battle available"):
        super().__init__(message)


class AlreadyJoinedError(BattleError):
    def __init__(self, message: str = "User already joined this battle"):
        super().__init__(message)


class BattleFullError(BattleError):
    def __init__(self, message: str = "Battle is full"):
        super().__init__(message)


class BattleNotActiveError(BattleError):
    def __init__(self, message: str = "Battle is not active"):
        super().__init__(message)


class NotParticipantError(BattleError):
    def __init__(self, message: str = "User must join battle before submitting arguments"):
        super().__init__(message)


class InvalidCastError(BattleError):
    """Cast content or side failed validation."""


class CastNotFoundError(BattleError):
    def __init__(self, message: str = "Cast not found"):
        super().__init__(message)


class BattleGenerationDisabledError(BattleError):
    def __init__(self, message: str = "Battle generation is disabled"):
        super().__init__(message)


class ActiveBattleExistsError(BattleError):
    """Insert rejected by the single-active-battle constraint."""

    def __init__(self, message: str = "An active battle already exists"):
        super().__init__(message)
