from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    GATEWAY = "gateway"
    MALFORMED_ENVELOPE = "malformed_envelope"
    CONTRACT_VIOLATION = "contract_violation"
    GRADING_FAILED = "grading_failed"


class QuizError(Exception):
    """Base class for every failure the quiz core reports to its callers."""
    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"errorKind": self.kind.value, "errorMessage": self.message}


class ValidationError(QuizError):
    """Bad caller input."""
    kind = ErrorKind.VALIDATION


class NotFoundError(QuizError):
    """Unknown session code, question id or user."""
    kind = ErrorKind.NOT_FOUND


class ConflictError(QuizError):
    """Session code could not be reserved."""
    kind = ErrorKind.CONFLICT


class GatewayError(QuizError):
    """Network, timeout or HTTP status failure talking to the generation service."""
    kind = ErrorKind.GATEWAY


class MalformedEnvelopeError(QuizError):
    """The transport envelope has no generated text at the expected path."""
    kind = ErrorKind.MALFORMED_ENVELOPE


class ContractViolationError(QuizError):
    """Generated text does not match the required JSON shape or count."""
    kind = ErrorKind.CONTRACT_VIOLATION


class GradingFailedError(QuizError):
    """An open answer could not be graded from the generator output."""
    kind = ErrorKind.GRADING_FAILED
