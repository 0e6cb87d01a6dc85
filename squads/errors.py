"""Service-level errors.

Services raise these instead of ``HTTPException`` so they can run outside a
request (scripts, scoring jobs). The app registers one handler that turns
them into JSON error responses with the carried status code.
"""
from fastapi import status


class TeamServiceError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Team service error"

    def __init__(self, message: str | None = None):
        self.message = message or self.message
        super().__init__(self.message)


class ValidationError(TeamServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid request"


class ConflictError(TeamServiceError):
    # User-actionable, surfaced as a plain bad request
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Conflicting request"


class NotFoundError(TeamServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Not found"


class ForbiddenError(TeamServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "Only the team leader can rename the team"


class NotInQueueError(ConflictError):
    message = "Not in queue"


class NameTakenError(ConflictError):
    message = "Team name already taken"


class NoPermanentTeamError(ConflictError):
    message = "You must be in a permanent team to participate"


class TeamNotFoundError(NotFoundError):
    message = "Team not found"


class MatchNotFoundError(NotFoundError):
    message = "Match not found"


class UserNotFoundError(NotFoundError):
    message = "User not found"
