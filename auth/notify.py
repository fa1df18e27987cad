"""
auth/notify.py -- Hand-off point for password reset tokens.

The session controller calls notifier.send_reset(user, token) after issuing a
reset token. Delivering it (email, SMS, ...) is outside this service; the
default LogResetNotifier only records that a reset was requested. The token
itself is logged at DEBUG so a developer can complete the flow locally.
"""

from __future__ import annotations

import logging
from typing import Protocol

from auth.models import User

logger = logging.getLogger("tokengate.notify")


class ResetNotifier(Protocol):
    def send_reset(self, user: User, token: str) -> None: ...


class LogResetNotifier:
    def send_reset(self, user: User, token: str) -> None:
        logger.info("Password reset requested for user_id=%s", user.id)
        logger.debug("Reset token for user_id=%s: %s", user.id, token)
