"""Domain-specific exceptions"""

from typing import Any, Dict


class DomainException(Exception):
    """Base exception for domain layer"""

    kind = "DomainError"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details


class InvalidAmountError(DomainException):
    """Amount (or other numeric input) is zero, negative, or out of range"""

    kind = "InvalidAmount"


class InsufficientPositionError(DomainException):
    """LP withdrawal exceeds the provider's token balance"""

    kind = "InsufficientPosition"

    def __init__(self, requested: int, available: int):
        super().__init__(
            f"Requested {requested} LP tokens but position holds {available}",
            requested=str(requested),
            available=str(available),
        )


class InsufficientLiquidityError(DomainException):
    """Pool cannot fund the withdrawal or loan"""

    kind = "InsufficientLiquidity"

    def __init__(self, requested: int, available: int):
        super().__init__(
            f"Requested {requested} but only {available} is available",
            requested=str(requested),
            available=str(available),
        )


class ExceedsLimitError(DomainException):
    """Loan amount is above the borrower's limit"""

    kind = "ExceedsLimit"

    def __init__(self, requested: int, max_borrow: int):
        super().__init__(
            f"Requested {requested} exceeds borrowing limit {max_borrow}",
            requested=str(requested),
            max=str(max_borrow),
        )


class NotFoundError(DomainException):
    """Entity does not exist or is not visible to the caller"""

    kind = "NotFound"

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} not found", entity=entity, id=entity_id)


class AlreadySettledError(DomainException):
    """Loan has already reached a terminal state"""

    kind = "AlreadySettled"

    def __init__(self, loan_id: int, status: str):
        super().__init__(f"Loan {loan_id} is already {status}", loan_id=loan_id, status=status)


class NotDueError(DomainException):
    """Loan cannot be defaulted before its due date"""

    kind = "NotDue"

    def __init__(self, loan_id: int, due_date: str):
        super().__init__(f"Loan {loan_id} is not due until {due_date}", loan_id=loan_id, due_date=due_date)


class ContentionError(DomainException):
    """Concurrent writers kept conflicting; safe to retry after backoff"""

    kind = "Contention"


class AlreadyMintedError(DomainException):
    """User already holds a credit NFT"""

    kind = "AlreadyMinted"


class VerificationReusedError(DomainException):
    """Verification nullifier is already bound to another user or mint"""

    kind = "VerificationReused"


class VerificationRequiredError(DomainException):
    """Action requires a linked identity verification"""

    kind = "VerificationRequired"


class VerificationProviderError(DomainException):
    """Identity provider returned an error or is unavailable"""

    kind = "VerificationProviderError"
