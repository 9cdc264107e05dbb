"""Typed errors raised by the service layer.

Each carries the HTTP status the boundary maps it to and a message that is
safe to return to the client.
"""


class ServiceError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(ServiceError):
    status_code = 404
    default_message = "Not found"


class RatingNotFoundError(NotFoundError):
    default_message = "Recommendation rating not found"


class UserNotFoundError(NotFoundError):
    default_message = "User not found"


class JobNotFoundError(NotFoundError):
    default_message = "Job not found"


class ProfileNotFoundError(NotFoundError):
    default_message = "User profile not found"


class ForbiddenError(ServiceError):
    status_code = 403
    default_message = "Forbidden"


class DuplicateRatingError(ServiceError):
    status_code = 409
    default_message = "Rating already exists for this user and job"


class InvalidInputError(ServiceError):
    status_code = 400
    default_message = "Invalid input data"


class ProfileIncompleteError(ServiceError):
    status_code = 400
    default_message = "Profile must be completed to get recommendations"


class MissingUserIdError(InvalidInputError):
    default_message = "User ID required for refresh action"


class ScoringFailedError(ServiceError):
    status_code = 500
    default_message = "Failed to generate recommendations"
