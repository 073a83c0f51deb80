"""
订阅资格检查

校验流程只依赖 is_eligible(user_id) -> bool 这个约定，
具体规则（这里是认证徽章）由外部维护。
"""
from __future__ import annotations

import uuid
from typing import Protocol

from sqlmodel import Session

from app.models import UserProfile


class EligibilityGate(Protocol):
    def is_eligible(self, user_id: uuid.UUID) -> bool: ...


class ProfileEligibilityGate:
    """按 user_profiles.maternal_verified 判断资格"""

    def __init__(self, session: Session) -> None:
        self.session = session

    def is_eligible(self, user_id: uuid.UUID) -> bool:
        profile = self.session.get(UserProfile, user_id)
        return bool(profile and profile.maternal_verified)
