class QuizError(Exception):
    """Base class for errors raised by the quiz services."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(QuizError):
    """A required field is missing from a batch item. Nothing was written."""
    pass


class NotFoundError(QuizError):
    """Referenced quiz, question, answer or result does not exist."""
    pass


class ConflictError(QuizError):
    """A uniqueness constraint was violated."""
    pass


class StoreFault(QuizError):
    """Database infrastructure failure. The open transaction was rolled back."""
    pass
