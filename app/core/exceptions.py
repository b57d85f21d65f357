"""Domain errors raised by the booking core and rendered by the API layer."""


class BookingError(Exception):
    status_code = 400

    def __init__(self, message: str, status_code: int = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class NotFound(BookingError):
    status_code = 404


class InvalidArgument(BookingError):
    status_code = 400


class Conflict(BookingError):
    """The slot or booking changed under us; the caller may pick again."""

    status_code = 409


class IllegalTransition(BookingError):
    status_code = 400

    def __init__(self, current: str, attempted: str, message: str = None):
        self.current = current
        self.attempted = attempted
        super().__init__(
            message or f"Cannot {attempted} a booking whose status is '{current}'"
        )


class Forbidden(BookingError):
    status_code = 403


class StoreUnavailable(BookingError):
    status_code = 503
