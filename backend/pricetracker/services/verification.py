"""Registration verification - anti-fraud checks gating the points award"""
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pricetracker.core.config import settings
from pricetracker.models.price_history import PriceHistory
from pricetracker.models.store import Store
from pricetracker.services.vision import VisionClient, VisionError

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371

DUPLICATE_MESSAGE = (
    "24시간 내에 다른 사용자가 이미 이 상품의 가격을 등록했습니다. "
    "가격 등록은 가능하지만 포인트가 지급되지 않습니다."
)
INVALID_IMAGE_MESSAGE = "유효하지 않은 이미지입니다."


@dataclass
class VerificationPolicy:
    """Tunable thresholds for the fraud checks"""
    duplicate_window_hours: int = 24
    location_warning_km: float = 1.0
    points_per_registration: int = 5
    image_min_confidence: int = 50

    @classmethod
    def from_settings(cls) -> "VerificationPolicy":
        return cls(
            duplicate_window_hours=settings.DUPLICATE_WINDOW_HOURS,
            location_warning_km=settings.LOCATION_WARNING_KM,
            points_per_registration=settings.POINTS_PER_REGISTRATION,
            image_min_confidence=settings.IMAGE_MIN_CONFIDENCE,
        )


@dataclass
class VerificationResult:
    is_valid_image: bool = True
    image_verified: bool = False  # vision model actually looked at the image
    image_validation_message: Optional[str] = None
    is_duplicate: bool = False
    duplicate_message: Optional[str] = None
    location_warning: Optional[str] = None
    distance_km: Optional[float] = None
    award_points: bool = True
    points_to_award: int = 0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two coordinates in km."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


class RegistrationVerifier:
    """
    Runs the checks a price registration must pass before points are awarded.

    1. Image validation via the vision model (only with an image and a configured client)
    2. Duplicate registration for the same product/store within the window
    3. GPS distance between the user and the selected store

    Only an invalid image blocks a registration. Duplicates register without
    points; a distant location just produces a warning.
    """

    def __init__(
        self,
        db: AsyncSession,
        vision: Optional[VisionClient] = None,
        policy: Optional[VerificationPolicy] = None,
    ):
        self.db = db
        self.vision = vision
        self.policy = policy or VerificationPolicy.from_settings()

    async def verify(
        self,
        product_id: str,
        store_id: str,
        image_base64: Optional[str] = None,
        user_latitude: Optional[float] = None,
        user_longitude: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> VerificationResult:
        result = VerificationResult(points_to_award=self.policy.points_per_registration)

        if image_base64 and self.vision is not None and self.vision.configured:
            await self._check_image(result, image_base64)

        await self._check_duplicate(result, product_id, store_id, now or datetime.now(timezone.utc))

        if user_latitude is not None and user_longitude is not None:
            await self._check_location(result, store_id, user_latitude, user_longitude)

        if not result.is_valid_image or result.is_duplicate:
            result.award_points = False
            result.points_to_award = 0

        logger.info(
            "Verification complete: product=%s store=%s valid_image=%s duplicate=%s points=%s",
            product_id, store_id, result.is_valid_image, result.is_duplicate, result.points_to_award,
        )
        return result

    async def _check_image(self, result: VerificationResult, image_base64: str) -> None:
        try:
            validation = await self.vision.validate_price_tag(image_base64)
        except VisionError as e:
            # Vision outages must not block registrations
            logger.error("Image verification failed, allowing registration: %s", e)
            return

        logger.info("Image verification result: valid=%s confidence=%s", validation.is_valid, validation.confidence)
        result.image_verified = True
        if not validation.is_valid or validation.confidence < self.policy.image_min_confidence:
            result.is_valid_image = False
            result.image_validation_message = validation.reason or INVALID_IMAGE_MESSAGE
            result.award_points = False

    async def _check_duplicate(
        self, result: VerificationResult, product_id: str, store_id: str, now: datetime
    ) -> None:
        window_start = now - timedelta(hours=self.policy.duplicate_window_hours)
        rows = await self.db.execute(
            select(PriceHistory.id).where(
                PriceHistory.product_id == product_id,
                PriceHistory.store_id == store_id,
                PriceHistory.recorded_at >= window_start,
            ).limit(5)
        )
        recent = rows.scalars().all()

        if recent:
            logger.info(
                "Found %d recent registrations for product %s at store %s",
                len(recent), product_id, store_id,
            )
            result.is_duplicate = True
            result.duplicate_message = DUPLICATE_MESSAGE
            result.award_points = False

    async def _check_location(
        self, result: VerificationResult, store_id: str, latitude: float, longitude: float
    ) -> None:
        store = await self.db.get(Store, store_id)
        if store is None or store.latitude is None or store.longitude is None:
            return

        distance = haversine_km(latitude, longitude, store.latitude, store.longitude)
        result.distance_km = round(distance, 2)
        logger.info("Distance from %s: %.2f km", store.name, distance)

        if distance > self.policy.location_warning_km:
            result.location_warning = (
                f"현재 위치가 선택한 매장({store.name})과 {distance:.1f}km 떨어져 있습니다. "
                "올바른 매장을 선택했는지 확인해주세요."
            )
