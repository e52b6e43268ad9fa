from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from src.identity.models import Membership, User


class UserStore(ABC):
    @abstractmethod
    def find_by_id(self, user_id: int) -> Optional[User]:
        pass

    @abstractmethod
    def find_by_email(self, email: str) -> Optional[User]:
        pass


class MembershipStore(ABC):
    @abstractmethod
    def find(self, tenant_id: int, user_id: int) -> Optional[Membership]:
        pass
