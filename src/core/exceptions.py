from fastapi import status


class HubError(Exception):
    """Base class for business-rule failures surfaced to API callers.

    Subclasses pin the HTTP status and the stable error label; the message is
    free text shown to the user.
    """

    status_code: int = status.HTTP_400_BAD_REQUEST
    error: str = "bad_request"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class Unauthorized(HubError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "unauthorized"


class Forbidden(HubError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "forbidden"


class NotFound(HubError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "not_found"


class BadRequest(HubError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "bad_request"


class Conflict(HubError):
    status_code = status.HTTP_409_CONFLICT
    error = "conflict"


class InvitationNotFound(NotFound):
    error = "invitation_not_found"

    def __init__(self) -> None:
        super().__init__("Invitation not found.")


class InvitationAlreadyUsed(BadRequest):
    error = "invitation_already_used"

    def __init__(self) -> None:
        super().__init__("This invitation has already been used.")


class InvitationExpired(BadRequest):
    error = "invitation_expired"

    def __init__(self) -> None:
        super().__init__("This invitation has expired. Ask an administrator for a new one.")


class DomainNotAllowed(BadRequest):
    error = "domain_not_allowed"

    def __init__(self, domain: str) -> None:
        super().__init__(f"Domain '{domain}' is not on the allowed list.")
        self.domain = domain
