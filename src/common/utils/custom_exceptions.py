class BookingError(Exception):
    status_code = 400


class InvalidInput(BookingError):
    pass


class ConflictError(BookingError):
    status_code = 409


class CapacityError(BookingError):
    pass


class InvalidRangeError(BookingError):
    pass


class AuthorizationError(BookingError):
    status_code = 403


class AlreadyCancelledError(BookingError):
    pass


class TooLateToCancelError(BookingError):
    pass


class TerminalStateError(BookingError):
    pass


class Unauthorized(BookingError):
    status_code = 401


class NotFoundException(BookingError):
    def __init__(self, resource: str, identifier: str, status_code: int = 404):
        super().__init__(resource, identifier)
        self.resource = resource
        self.identifier = identifier
        self.status_code = status_code

    def __str__(self):
        return f"{self.resource} '{self.identifier}' not found"
