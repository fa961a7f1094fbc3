"""Exception hierarchy for session resolution.

Not-found and suspicious-request outcomes are ordinary return values and never
raised; only infrastructure failures travel as exceptions.
"""


class SessionError(Exception):
    """Base class for session errors"""
    pass


class SessionStorageError(SessionError):
    """Raised when the session store cannot be read or written.

    Covers unreachable backends, failed writes and exhausted id generation.
    Callers must not treat this as "no session".
    """
    pass


class SessionSerializationError(SessionError):
    """Raised when a stored payload cannot be decoded"""
    pass


class SessionIdCollisionError(SessionStorageError):
    """Raised by an insert when the session id is already taken"""
    pass
