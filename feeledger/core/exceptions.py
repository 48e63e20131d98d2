from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    code = "ServiceError"

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def to_detail(self) -> dict:
        return {"code": self.code, "message": self.message}


class InvalidAmount(ServiceError):
    """Amount is non-positive or not a number. Raised before any write."""

    code = "InvalidAmount"

    def __init__(self, message: str = "Payment amount must be a number greater than zero") -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class ExceedsDue(ServiceError):
    """Amount (or the increase on edit) is larger than the outstanding balance."""

    code = "ExceedsDue"

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class StudentNotFound(ServiceError):
    code = "StudentNotFound"

    def __init__(self, message: str = "Student not found") -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class PaymentNotFound(ServiceError):
    code = "PaymentNotFound"

    def __init__(self, message: str = "Payment not found") -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class PersistenceFailure(ServiceError):
    """The store rejected the write. The transaction has been rolled back."""

    code = "PersistenceFailure"

    def __init__(self, message: str = "Could not save changes, nothing was applied") -> None:
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)
