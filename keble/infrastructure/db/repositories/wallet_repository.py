"""
Wallet Repository
Balance changes are single conditional UPDATE statements, never read-modify-write
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from keble.domain.errors import ConcurrencyConflict, MissingWallet
from keble.domain.models import Wallet
from keble.infrastructure.db.models import WalletModel


class WalletRepository:
    """Repository for Wallet"""

    def __init__(self, session: AsyncSession):
        """Initialize with database session"""
        self.session = session

    async def create(self, user_id: int, balance: Decimal = Decimal('0')) -> Wallet:
        model = WalletModel(user_id=user_id, balance=balance)
        self.session.add(model)
        await self.session.flush()

        return self._to_domain(model)

    async def get_by_user_id(self, user_id: int) -> Optional[Wallet]:
        result = await self.session.execute(
            select(WalletModel)
            .where(WalletModel.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return self._to_domain(result.scalar_one_or_none())

    async def debit(self, user_id: int, amount: Decimal) -> Wallet:
        """
        Decrement the balance if it covers ``amount``

        Args:
            user_id: Wallet owner
            amount: Amount to take

        Returns:
            Wallet after the debit

        Raises:
            ConcurrencyConflict: Balance no longer covers the amount
        """
        result = await self.session.execute(
            update(WalletModel)
            .where(
                WalletModel.user_id == user_id,
                WalletModel.balance >= amount,
            )
            .values(balance=WalletModel.balance - amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConcurrencyConflict(
                f"Wallet of user {user_id} cannot cover a debit of {amount}"
            )

        return await self.get_by_user_id(user_id)

    async def credit(self, user_id: int, amount: Decimal) -> Wallet:
        """Atomic increment of the balance"""
        result = await self.session.execute(
            update(WalletModel)
            .where(WalletModel.user_id == user_id)
            .values(balance=WalletModel.balance + amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise MissingWallet(user_id)

        return await self.get_by_user_id(user_id)

    @staticmethod
    def _to_domain(model: Optional[WalletModel]) -> Optional[Wallet]:
        """Convert database model to domain entity"""
        if model is None:
            return None

        return Wallet(
            id=model.id,
            user_id=model.user_id,
            balance=Decimal(str(model.balance)),
        )
