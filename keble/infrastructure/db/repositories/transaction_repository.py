"""
Transaction Repository
Insert-only payment audit records
"""

from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from keble.domain.models import Transaction, TransactionType
from keble.infrastructure.db.models import TransactionModel


class TransactionRepository:
    """Repository for Transaction"""

    def __init__(self, session: AsyncSession):
        """Initialize with database session"""
        self.session = session

    async def create(
        self,
        *,
        user_id: int,
        amount: Decimal,
        transaction_type: TransactionType,
        reference: str,
        description: str,
        balance_before: Optional[Decimal] = None,
        balance_after: Optional[Decimal] = None,
    ) -> Transaction:
        model = TransactionModel(
            user_id=user_id,
            amount=amount,
            transaction_type=transaction_type,
            reference=reference,
            description=description,
            balance_before=balance_before,
            balance_after=balance_after,
        )
        self.session.add(model)
        await self.session.flush()

        return self._to_domain(model)

    async def list_for_user(self, user_id: int) -> List[Transaction]:
        result = await self.session.execute(
            select(TransactionModel)
            .where(TransactionModel.user_id == user_id)
            .order_by(TransactionModel.created_at, TransactionModel.id)
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    @staticmethod
    def _to_domain(model: Optional[TransactionModel]) -> Optional[Transaction]:
        """Convert database model to domain entity"""
        if model is None:
            return None

        return Transaction(
            id=model.id,
            user_id=model.user_id,
            amount=Decimal(str(model.amount)),
            transaction_type=TransactionType(model.transaction_type),
            reference=model.reference,
            description=model.description,
            balance_before=(
                Decimal(str(model.balance_before)) if model.balance_before is not None else None
            ),
            balance_after=(
                Decimal(str(model.balance_after)) if model.balance_after is not None else None
            ),
            created_at=model.created_at,
        )
