"""
Domain exceptions shared across services and routes.
"""
from typing import Optional


class ClaimNotFoundError(Exception):
    """Raised when a claim id does not resolve to a stored claim."""

    def __init__(self, claim_id: str):
        self.claim_id = claim_id
        super().__init__(f"Claim not found: {claim_id}")


class TransitionRejected(Exception):
    """Raised when a lifecycle guard refuses a stage transition."""

    def __init__(self, current: str, target: str, reason: str):
        self.current = current
        self.target = target
        self.reason = reason
        super().__init__(f"Cannot move claim from {current} to {target}: {reason}")


class TurnProcessingError(Exception):
    """
    A conversational turn failed and nothing was persisted.

    ``user_message`` is safe to show to the driver; ``detail`` is for operators.
    """

    DEFAULT_MESSAGE = "Something went wrong on our side. Please try sending your message again."

    def __init__(
        self,
        detail: str,
        status_code: int = 500,
        user_message: Optional[str] = None,
    ):
        self.detail = detail
        self.status_code = status_code
        self.user_message = user_message or self.DEFAULT_MESSAGE
        super().__init__(detail)
