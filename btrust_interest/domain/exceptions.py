"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ConfigurationError(DomainException):
    """Missing or malformed configuration, raised at startup"""

    pass


class LedgerGatewayError(DomainException):
    """Ledger gateway call failed"""

    pass


class LedgerUnavailableError(LedgerGatewayError):
    """Ledger store unreachable or connection lost; aborts the whole run"""

    pass


class PostingRejectedError(LedgerGatewayError):
    """Ledger refused a single posting (closed account, bad amount, rule violation)"""

    def __init__(self, account_id: int, reason: str):
        super().__init__(f"Posting to account {account_id} rejected: {reason}")
        self.account_id = account_id
        self.reason = reason


class RecorderError(DomainException):
    """Interest calculation record could not be persisted"""

    pass


class RunInProgressError(DomainException):
    """A batch of the same interest kind is already running"""

    def __init__(self, kind: str):
        super().__init__(f"{kind} interest run already in progress")
        self.kind = kind
