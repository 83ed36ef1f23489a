"""
SMTP client for tenant-owned mail servers
"""

import asyncio
import logging
import smtplib
import ssl
from typing import Optional

from ..errors import ProviderError

logger = logging.getLogger(__name__)


class SmtpClient:
    provider = "email"

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        secure: Optional[bool] = None,
    ):
        self.host = host
        self.port = int(port)
        self.user = user
        self.password = password
        # Implicit TLS when not stated and the port is the SMTPS port
        self.secure = secure if secure is not None else self.port == 465

    def _connect(self) -> smtplib.SMTP:
        context = ssl.create_default_context()
        if self.secure:
            return smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=10)
        server = smtplib.SMTP(self.host, self.port, timeout=10)
        server.ehlo()
        if server.has_extn("starttls"):
            server.starttls(context=context)
        return server

    def _login(self) -> None:
        server = self._connect()
        try:
            server.login(self.user, self.password)
        finally:
            server.quit()

    async def verify(self) -> dict:
        """Connect and authenticate without sending anything"""
        try:
            await asyncio.to_thread(self._login)
        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP auth error: {e}")
            raise ProviderError(self.provider, "Authentication failed. Check username and password.") from e
        except smtplib.SMTPConnectError as e:
            logger.error(f"SMTP connect error: {e}")
            raise ProviderError(
                self.provider, f"Could not connect to {self.host}:{self.port}. Check host and port."
            ) from e
        except ssl.SSLError as e:
            logger.error(f"SSL error: {e}")
            raise ProviderError(self.provider, f"SSL/TLS error: {e}") from e
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP error: {e}")
            raise ProviderError(self.provider, f"Connection failed: {e}") from e

        logger.info(f"SMTP login successful for {self.host}:{self.port}")
        return {"host": self.host, "port": self.port, "secure": self.secure}

    async def test_connection(self) -> dict:
        return await self.verify()
