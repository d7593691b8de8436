"""Registration Service - price tag registration and points award"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pricetracker.models.price_history import PriceHistory
from pricetracker.models.product import Product
from pricetracker.models.store import Store
from pricetracker.models.user import UserProfile, PointTransaction
from pricetracker.services.discount import format_discount_period, seoul_today
from pricetracker.services.verification import VerificationResult

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "가공식품"


class RegistrationError(Exception):
    """Registration rejected"""


class InvalidPriceTagImage(RegistrationError):
    def __init__(self, message: Optional[str] = None):
        super().__init__(message or "유효한 코스트코 가격표가 아닙니다.")


class DuplicateDiscountPeriod(RegistrationError):
    def __init__(self):
        super().__init__("해당 상품의 동일한 할인 기간이 이미 등록되어 있습니다.")


class UnknownStore(RegistrationError):
    def __init__(self, store_id: str):
        super().__init__(f"Store {store_id} not found")


@dataclass
class RegistrationOutcome:
    record: PriceHistory
    points_awarded: int = 0
    points_status: Optional[str] = None  # pending, confirmed


def split_prices(current_price: int, original_price: Optional[int]) -> dict:
    """
    Derive the stored price columns from what the tag shows.

    The tag gives the price paid and, on discount, the regular price; the
    amount off is their difference.
    """
    if original_price and original_price > current_price:
        amount = original_price - current_price
        return {
            "selling_price": original_price,
            "current_price": current_price,
            "discount_price": amount,
            "discount_amount": amount,
            "discounted_price": current_price,
        }

    return {
        "selling_price": original_price or current_price,
        "current_price": current_price,
        "discount_price": None,
        "discount_amount": None,
        "discounted_price": None,
    }


class RegistrationService:
    """
    Stores verified price registrations.

    - One price_history row per registration
    - Same product/store/discount period is only registered once
    - Points go to a pending transaction, confirmed at once when the image was verified
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def register_price(
        self,
        user_id: str,
        product_id: str,
        store_id: str,
        current_price: int,
        verification: VerificationResult,
        original_price: Optional[int] = None,
        product_name: Optional[str] = None,
        category: Optional[str] = None,
        discount_period: Optional[str] = None,
        image_url: Optional[str] = None,
        image_phash: Optional[str] = None,
        today: Optional[date] = None,
    ) -> RegistrationOutcome:
        if not verification.is_valid_image:
            raise InvalidPriceTagImage(verification.image_validation_message)

        if await self.db.get(Store, store_id) is None:
            raise UnknownStore(store_id)

        period = format_discount_period(discount_period.strip() if discount_period else None, today or seoul_today())

        if period is not None and await self._period_exists(product_id, store_id, period):
            raise DuplicateDiscountPeriod()

        await self._upsert_product(product_id, product_name, category, image_url)

        record = PriceHistory(
            product_id=product_id,
            store_id=store_id,
            user_id=user_id,
            discount_period=period,
            image_url=image_url,
            image_phash=image_phash,
            recorded_at=datetime.now(timezone.utc),
            **split_prices(current_price, original_price),
        )
        self.db.add(record)

        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            raise DuplicateDiscountPeriod() from e

        outcome = RegistrationOutcome(record=record)
        profile = await self._get_or_create_profile(user_id)
        profile.unique_stores_visited = await self._count_user_stores(user_id)

        if verification.award_points and verification.points_to_award > 0:
            outcome.points_awarded = verification.points_to_award
            outcome.points_status = self._award_points(profile, record, verification)

        await self.db.commit()
        await self.db.refresh(record)

        logger.info(
            "Registered price for product %s at store %s: %s won (points=%s %s)",
            product_id, store_id, record.current_price, outcome.points_awarded, outcome.points_status,
        )
        return outcome

    async def _period_exists(self, product_id: str, store_id: str, period: str) -> bool:
        result = await self.db.execute(
            select(PriceHistory.id).where(
                PriceHistory.product_id == product_id,
                PriceHistory.store_id == store_id,
                PriceHistory.discount_period == period,
            ).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def _upsert_product(
        self,
        product_id: str,
        name: Optional[str],
        category: Optional[str],
        image_url: Optional[str],
    ) -> Product:
        product = await self.db.get(Product, product_id)

        if product is None:
            product = Product(
                product_id=product_id,
                name=name or f"상품 {product_id}",
                category=category or DEFAULT_CATEGORY,
                image_url=image_url,
            )
            self.db.add(product)
        else:
            if name:
                product.name = name
            if category:
                product.category = category
            if image_url:
                product.image_url = image_url

        await self.db.flush()
        return product

    async def _get_or_create_profile(self, user_id: str) -> UserProfile:
        profile = await self.db.get(UserProfile, user_id)
        if profile is None:
            profile = UserProfile(
                id=user_id,
                points=0,
                pending_points=0,
                confirmed_points=0,
                unique_stores_visited=0,
            )
            self.db.add(profile)
            await self.db.flush()
        return profile

    async def _count_user_stores(self, user_id: str) -> int:
        result = await self.db.execute(
            select(func.count(func.distinct(PriceHistory.store_id))).where(
                PriceHistory.user_id == user_id
            )
        )
        return result.scalar_one()

    def _award_points(
        self, profile: UserProfile, record: PriceHistory, verification: VerificationResult
    ) -> str:
        amount = verification.points_to_award
        transaction = PointTransaction(
            user_id=profile.id,
            amount=amount,
            status="pending",
            reason="price_registration",
            price_history_id=record.id,
        )
        profile.pending_points += amount

        if verification.image_verified and verification.is_valid_image:
            transaction.status = "confirmed"
            transaction.confirmed_at = datetime.now(timezone.utc)
            profile.pending_points -= amount
            profile.confirmed_points += amount
            profile.points += amount

        self.db.add(transaction)
        return transaction.status
