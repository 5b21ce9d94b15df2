import traceback


class BookingError(Exception):
    def __init__(self, message: str, status_code: int = 400, details: dict | None = None, stack_trace: bool = False):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.stack_trace = traceback.format_exc() if stack_trace else None
        super().__init__(self.message)


class NotFoundError(BookingError):
    def __init__(self, resource: str, resource_id):
        super().__init__(f"{resource} {resource_id} not found", status_code=404,
                         details={"resource": resource, "id": resource_id})


class ValidationError(BookingError):
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=400, details=details)


class ConflictError(BookingError):
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=409, details=details)


class SeatConflictError(ConflictError):
    def __init__(self, seat_ids: list[int]):
        self.seat_ids = sorted(seat_ids)
        super().__init__(
            f"Seats already booked: {', '.join(str(s) for s in self.seat_ids)}",
            details={"seat_ids": self.seat_ids})


class BookingCodeCollisionError(ConflictError):
    def __init__(self, attempts: int):
        super().__init__(f"Could not allocate a unique booking code after {attempts} attempts",
                         details={"attempts": attempts})


class InvalidStatusTransitionError(ConflictError):
    def __init__(self, current, requested):
        super().__init__(f"Cannot move booking from {current.value} to {requested.value}",
                         details={"current": current.value, "requested": requested.value})


class GatewayError(BookingError):
    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider} gateway failure: {message}", status_code=502,
                         details={"provider": provider})


class BookingPaymentError(BookingError):
    def __init__(self, booking_code: str, cause: BookingError):
        self.booking_code = booking_code
        self.cause = cause
        super().__init__(f"Booking {booking_code} was cancelled: {cause.message}",
                         status_code=cause.status_code if cause.status_code < 500 else 502,
                         details={"booking_code": booking_code, **cause.details})


class InternalError(BookingError):
    def __init__(self, message: str = "Storage operation failed"):
        super().__init__(message, status_code=500, stack_trace=True)
