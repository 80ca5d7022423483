from rest_framework import status
from rest_framework.exceptions import APIException, NotFound, PermissionDenied


# --- Not found ---
class ExamNotFound(NotFound):
    default_detail = "Exam not found."
    default_code = "exam_not_found"


class AttemptNotFound(NotFound):
    default_detail = "Exam attempt not found."
    default_code = "attempt_not_found"


# --- Authorization ---
class Forbidden(PermissionDenied):
    default_detail = "Not authorized."
    default_code = "forbidden"


# --- State ---
class InvalidState(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Operation not allowed in the attempt's current state."
    default_code = "invalid_state"


class AlreadySubmitted(InvalidState):
    default_detail = "Exam already submitted."
    default_code = "already_submitted"


class DuplicateAttempt(APIException):
    """Raised by start when the student already has an attempt for the exam."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = "You have already attempted this exam."
    default_code = "duplicate_attempt"

    def __init__(self, attempt, detail=None, code=None):
        super().__init__(detail, code)
        self.attempt = attempt


# --- Schedule / visibility gating on start ---
class ExamNotPublished(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Exam is not published yet."
    default_code = "exam_not_published"


class ExamNotStarted(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Exam has not started yet."
    default_code = "exam_not_started"


class ExamEnded(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Exam has ended."
    default_code = "exam_ended"


# --- Manual evaluation ---
class InvalidMarks(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Marks must be between zero and the question's points."
    default_code = "invalid_marks"
