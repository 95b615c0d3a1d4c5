"""
Error taxonomy shared by the domain, the persistence layer and the HTTP
surface.

Every error raised on purpose by bloglite derives from ``BlogliteError``
and belongs to one family:

- ``ValidationFailed`` — malformed input, rejected synchronously.
- ``Conflict``         — request is well formed but clashes with current
  state (duplicate version, unchanged status, ...).
- ``NotFound``         — the addressed article or version does not exist.
- ``Inconsistent``     — stored data or an outbox row cannot be
  interpreted; never retried by the dispatcher.
- ``Transient``        — a collaborator or the store failed; the
  dispatcher retries these up to its configured maximum.

``status_code`` is what the API returns for the family; ``code`` is a
stable machine-readable name derived from the class.
"""


class BlogliteError(Exception):
    status_code: int = 500
    default_message: str = "Internal error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def code(self) -> str:
        return type(self).__name__


class ValidationFailed(BlogliteError):
    status_code = 422
    default_message = "Invalid input"


class Conflict(BlogliteError):
    status_code = 409
    default_message = "Operation conflicts with the current state"


class NotFound(BlogliteError):
    status_code = 404
    default_message = "Resource not found"


class Inconsistent(BlogliteError):
    status_code = 500
    default_message = "Stored data is inconsistent"


class Transient(BlogliteError):
    status_code = 503
    default_message = "Temporarily unavailable"


# ---------------------------------------------------------------------------
# Application-level errors (no domain counterpart)
# ---------------------------------------------------------------------------

class ArticleNotFound(NotFound):
    default_message = "Article not found"


class SlugAlreadyExists(Conflict):
    default_message = "An article with this slug already exists"


class InvalidState(ValidationFailed):
    default_message = "State must be 0 (private) or 1 (public)"


class DataIntegrityError(Inconsistent):
    default_message = "Stored aggregate could not be decoded"


class UnknownEvent(Inconsistent):
    def __init__(self, topic: str) -> None:
        super().__init__(f"No handler registered for topic {topic!r}")
        self.topic = topic


class ProjectionError(Transient):
    default_message = "Read-model projection failed"
