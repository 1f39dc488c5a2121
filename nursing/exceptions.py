class NursingError(Exception):
    """Base class for record errors. `status_code` is read by the HTTP layer."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(NursingError):
    """A patient, history or observation is missing for the given id."""

    status_code = 404


class AlreadyExists(NursingError):
    """A uniqueness rule would be broken (id number, second history)."""

    status_code = 409


class InvalidArgument(NursingError):
    """A caller-supplied value is semantically invalid."""

    status_code = 400
