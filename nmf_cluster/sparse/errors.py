"""Contract violations raised by the sparse containers and clustering state."""


class ContractViolation(AssertionError):
    """Raised when a caller breaks a container precondition.

    Duplicate inserts, removal of absent keys, lookups on an unsorted
    vector and malformed column offsets are programming errors, not
    recoverable runtime conditions. Raised explicitly so the checks
    survive ``python -O``.
    """
