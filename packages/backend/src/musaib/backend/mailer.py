"""Outbound mail for the auth provider.

Only one message exists today: the password-reset link. The default
mailer just logs it — wire a real transport by subclassing Mailer.
"""

from abc import ABC, abstractmethod

import structlog

logger = structlog.get_logger()


class Mailer(ABC):
    """Delivers auth emails."""

    @abstractmethod
    async def send_password_reset(self, email: str, link: str) -> None:
        ...


class LogMailer(Mailer):
    """Writes reset links to the log instead of sending them."""

    def __init__(self, include_link: bool = True):
        self.include_link = include_link

    async def send_password_reset(self, email: str, link: str) -> None:
        if self.include_link:
            logger.info("mail.password_reset", email=email, link=link)
        else:
            logger.info("mail.password_reset", email=email)
