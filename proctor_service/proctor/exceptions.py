"""
Proctoring exceptions
"""


class ProctorError(Exception):
    """Base error for the proctoring engine"""
    pass


class InvalidObservationError(ProctorError, ValueError):
    """Malformed observation payload or out-of-range value"""
    pass


class SessionStateError(ProctorError):
    """Operation not valid in the session's current state (caller bug)"""
    pass
