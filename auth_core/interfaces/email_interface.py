"""
Email transport interface for dependency abstraction.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class IEmailTransport(Protocol):
    """Protocol for outbound email delivery."""

    async def send(self, to: str, subject: str, html_body: str) -> None:
        """
        Deliver one email.

        Args:
            to: Recipient address
            subject: Subject line
            html_body: HTML body

        Raises:
            EmailDeliveryError: If the message could not be delivered
        """
        ...
