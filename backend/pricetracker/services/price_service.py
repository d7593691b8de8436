"""Price Service - loads price history for the reconciliation views"""
import logging
from datetime import date, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pricetracker.models.price_history import PriceHistory
from pricetracker.models.product import Product
from pricetracker.services.discount import format_discount_period, seoul_today
from pricetracker.services.price_history import PriceRecord, resolve_discount

logger = logging.getLogger(__name__)


class PriceService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_product(self, product_id: str) -> Optional[Product]:
        return await self.db.get(Product, product_id)

    async def get_price_records(
        self, product_id: str, store_id: Optional[str] = None
    ) -> List[PriceRecord]:
        """Price records for a product, newest first."""
        query = select(PriceHistory).where(PriceHistory.product_id == product_id)
        if store_id:
            query = query.where(PriceHistory.store_id == store_id)
        query = query.order_by(PriceHistory.recorded_at.desc(), PriceHistory.id)

        result = await self.db.execute(query)
        return [PriceRecord.from_row(row) for row in result.scalars().all()]

    async def backfill_discount_fields(self, batch_size: int = 500) -> int:
        """
        Normalize legacy rows that only carry the overloaded discount_price.

        Returns the number of rows updated.
        """
        updated = 0
        while True:
            result = await self.db.execute(
                select(PriceHistory).where(
                    PriceHistory.discount_price.is_not(None),
                    PriceHistory.discount_price != 0,
                    PriceHistory.discount_amount.is_(None),
                    PriceHistory.discounted_price.is_(None),
                ).limit(batch_size)
            )
            rows = result.scalars().all()
            if not rows:
                break

            for row in rows:
                row.discount_amount, row.discounted_price = resolve_discount(
                    row.selling_price, row.discount_price
                )
            updated += len(rows)
            await self.db.commit()

        if updated:
            logger.info("Backfilled discount fields on %d price records", updated)
        return updated

    async def canonicalize_discount_periods(self, batch_size: int = 500) -> int:
        """
        Rewrite stored discount periods into ``YY.MM.DD - YY.MM.DD``.

        Legacy month/day periods take their year from the row's own
        registration date. A row whose canonical period already exists for
        the same product and store keeps its raw text.

        Returns the number of rows updated.
        """
        updated = 0
        last_id = ""
        while True:
            result = await self.db.execute(
                select(PriceHistory).where(
                    PriceHistory.discount_period.is_not(None),
                    PriceHistory.id > last_id,
                ).order_by(PriceHistory.id).limit(batch_size)
            )
            rows = result.scalars().all()
            if not rows:
                break
            last_id = rows[-1].id

            for row in rows:
                canonical = format_discount_period(row.discount_period, self._registered_on(row))
                if canonical == row.discount_period:
                    continue
                if await self._period_taken(row, canonical):
                    logger.warning(
                        "Keeping raw discount period %r on %s: %r already recorded",
                        row.discount_period, row.id, canonical,
                    )
                    continue
                row.discount_period = canonical
                updated += 1
            await self.db.commit()

        if updated:
            logger.info("Canonicalized discount periods on %d price records", updated)
        return updated

    @staticmethod
    def _registered_on(row: PriceHistory) -> date:
        recorded_at = row.recorded_at
        if recorded_at is None:
            return seoul_today()
        if recorded_at.tzinfo is None:
            # SQLite hands back naive UTC timestamps
            recorded_at = recorded_at.replace(tzinfo=timezone.utc)
        return seoul_today(recorded_at)

    async def _period_taken(self, row: PriceHistory, period: str) -> bool:
        result = await self.db.execute(
            select(PriceHistory.id).where(
                PriceHistory.product_id == row.product_id,
                PriceHistory.store_id == row.store_id,
                PriceHistory.discount_period == period,
                PriceHistory.id != row.id,
            ).limit(1)
        )
        return result.scalar_one_or_none() is not None
