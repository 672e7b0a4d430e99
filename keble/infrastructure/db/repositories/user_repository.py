"""
User Repository
Investor accounts and their invested-amount counter
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from keble.domain.errors import MissingUser
from keble.domain.models import User
from keble.infrastructure.db.models import UserModel


class UserRepository:
    """Repository for User"""

    def __init__(self, session: AsyncSession):
        """Initialize with database session"""
        self.session = session

    async def create(
        self,
        *,
        email: str,
        first_name: str,
        last_name: str,
        kyc_completed: bool = False,
    ) -> User:
        model = UserModel(
            email=email,
            first_name=first_name,
            last_name=last_name,
            kyc_completed=kyc_completed,
            total_amount_invested=Decimal('0'),
        )
        self.session.add(model)
        await self.session.flush()

        return self._to_domain(model)

    async def get(self, user_id: int) -> Optional[User]:
        result = await self.session.execute(
            select(UserModel)
            .where(UserModel.id == user_id)
            .execution_options(populate_existing=True)
        )
        return self._to_domain(result.scalar_one_or_none())

    async def increment_total_invested(self, user_id: int, amount: Decimal) -> None:
        """Atomic increment of the user's lifetime invested amount"""
        result = await self.session.execute(
            update(UserModel)
            .where(UserModel.id == user_id)
            .values(total_amount_invested=UserModel.total_amount_invested + amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise MissingUser(user_id)

    @staticmethod
    def _to_domain(model: Optional[UserModel]) -> Optional[User]:
        """Convert database model to domain entity"""
        if model is None:
            return None

        return User(
            id=model.id,
            email=model.email,
            first_name=model.first_name,
            last_name=model.last_name,
            kyc_completed=bool(model.kyc_completed),
            total_amount_invested=Decimal(str(model.total_amount_invested or 0)),
        )
