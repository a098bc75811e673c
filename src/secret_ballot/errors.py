"""Error taxonomy for ballot operations.

Every rejection raised by the store, the state machine or the decryption
orchestrator is a `BallotError`. Each subclass carries a stable `code` and an
HTTP status so clients can render a specific message without parsing text.
"""

from __future__ import annotations


class BallotError(Exception):
    code = "BALLOT_ERROR"
    http_status = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"error": self.message, "code": self.code}


class InvalidInput(BallotError):
    code = "INVALID_INPUT"
    http_status = 400


class InvalidProof(InvalidInput):
    code = "INVALID_PROOF"


class NotFound(BallotError):
    code = "NOT_FOUND"
    http_status = 404


class AlreadyVoted(BallotError):
    code = "ALREADY_VOTED"
    http_status = 409


class NotActive(BallotError):
    code = "NOT_ACTIVE"
    http_status = 409


class NotEnded(BallotError):
    code = "NOT_ENDED"
    http_status = 409


class AlreadyDecrypted(BallotError):
    code = "ALREADY_DECRYPTED"
    http_status = 409


class NotDecrypted(BallotError):
    code = "NOT_DECRYPTED"
    http_status = 409


class Unauthorized(BallotError):
    code = "UNAUTHORIZED"
    http_status = 403


class AuthorizationError(Unauthorized):
    """Raised by the encryption provider for bad signatures or ACL misses."""

    code = "DECRYPTION_UNAUTHORIZED"


class IntegrityMismatch(BallotError):
    code = "INTEGRITY_MISMATCH"
    http_status = 400
