"""EmailProvider protocol. Services depend on this, not on the SMTP implementation.

Every method returns True when the message was handed to the transport and
False otherwise; implementations never raise.
"""

from typing import Optional, Protocol


class EmailProvider(Protocol):
    async def send_verification_email(
        self, email: str, user_name: Optional[str], otp_code: str, expiry_minutes: int
    ) -> bool: ...

    async def send_password_reset_email(
        self, email: str, user_name: Optional[str], otp_code: str, expiry_minutes: int
    ) -> bool: ...

    async def send_welcome_email(
        self, email: str, user_name: Optional[str]
    ) -> bool: ...
