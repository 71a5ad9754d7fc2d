"""Exception types raised by the annotation pipeline."""


class AnnotationError(Exception):
    """Base class for annotation pipeline errors."""


class ParseError(AnnotationError):
    """Input yielded no identifiers to annotate."""


class VariantLookupError(AnnotationError, LookupError):
    """A batch call to the external lookup service failed.

    Attributes:
        identifiers: The identifiers in the failed request
    """

    def __init__(self, message: str, identifiers: list[str] | None = None):
        super().__init__(message)
        self.identifiers = list(identifiers or [])


class ConcurrentRunError(AnnotationError):
    """A run is already active for this session."""

    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} already has an active run")
        self.session_id = session_id


class PersistenceError(AnnotationError):
    """A session or result store write failed."""


class SessionNotFoundError(AnnotationError):
    """No session exists with the requested id."""

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class IdentifierMismatchError(AnnotationError):
    """Identifiers supplied on resume differ from those stored at creation."""

    def __init__(self, session_id: str, stored_digest: str, supplied_digest: str):
        super().__init__(
            f"Identifiers supplied for session {session_id} do not match the "
            f"stored list ({supplied_digest[:12]} != {stored_digest[:12]})"
        )
        self.session_id = session_id
        self.stored_digest = stored_digest
        self.supplied_digest = supplied_digest
