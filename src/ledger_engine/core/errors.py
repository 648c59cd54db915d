class RecordError(Exception):
    """Base class for errors raised by the record layer."""


class MissingArgument(RecordError, ValueError):
    """A mandatory argument was absent or falsy."""

    def __init__(self, name: str) -> None:
        super().__init__(f'Missing mandatory "{name}" parameter')
        self.name = name


class InvalidNumericInput(RecordError, ValueError):
    """An argument could not be coerced to a non-negative integer."""

    def __init__(self, name: str, value: object) -> None:
        super().__init__(f'"{name}" must be a non-negative integer, got {value!r}')
        self.name = name
        self.value = value


class PersistenceError(RecordError):
    """The persistence gateway failed to fetch or write a document."""

    def __init__(self, user_id: str, reason: str) -> None:
        super().__init__(f"persistence failed for user {user_id!r}: {reason}")
        self.user_id = user_id
        self.reason = reason
