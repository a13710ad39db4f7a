from typing import Any, Dict, Optional


class FormEngineError(Exception):
    """
    Base class for errors raised inside the form engine.
    """


class FetchFailure(FormEngineError):
    """
    Loading the candidate options of a relation field failed.
    Recovered locally by the picker and shown as an inline message.
    """

    def __init__(self, field_name: str, cause: Optional[BaseException] = None, message: Optional[str] = None):
        self.field_name = field_name
        self.cause = cause
        if message is None:
            message = f"Could not load options for '{field_name}'"
            if cause is not None and str(cause):
                message = f"{message}: {cause}"
        super().__init__(message)


class ValidationFailure(FormEngineError):
    """
    The validation schema rejected one or more field values.
    `errors` holds the FieldErrors mapping that blocked submission.
    """

    def __init__(self, errors: Dict[str, Any]):
        self.errors = errors
        super().__init__(f"{len(errors)} field(s) failed validation")
