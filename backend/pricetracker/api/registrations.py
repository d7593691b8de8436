"""Registration endpoints - verify, register and read price tags"""
import base64
import binascii
import re
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession
from slowapi import Limiter
from slowapi.util import get_remote_address

from pricetracker.core.config import settings
from pricetracker.core.database import get_db
from pricetracker.schemas.registration import (
    OcrRequest,
    OcrResponse,
    RegistrationRequest,
    RegistrationResponse,
    VerificationRequest,
    VerificationResponse,
)
from pricetracker.services.discount import format_discount_period, is_discount_active
from pricetracker.services.ocr import OCRService, image_phash
from pricetracker.services.registration_service import (
    DuplicateDiscountPeriod,
    InvalidPriceTagImage,
    RegistrationService,
    UnknownStore,
)
from pricetracker.services.verification import RegistrationVerifier, VerificationResult
from pricetracker.services.vision import (
    VisionClient,
    VisionError,
    VisionQuotaExceeded,
    VisionRateLimited,
)

router = APIRouter()
limiter = Limiter(key_func=get_remote_address)
ocr_service = OCRService()

DATA_URL_PATTERN = re.compile(r'^data:image/(jpeg|jpg|png|gif|webp);base64,')
BASE64_PATTERN = re.compile(r'^[A-Za-z0-9+/]+=*$')


async def get_vision_client():
    async with VisionClient() as vision:
        yield vision


def decode_image(image_base64: str) -> bytes:
    """Validate a base64 (or data: URL) image payload and return its bytes."""
    if len(image_base64) > settings.MAX_IMAGE_BASE64_BYTES:
        raise HTTPException(status_code=413, detail="Image too large (max 5MB)")

    payload = image_base64
    if image_base64.startswith("data:"):
        if not DATA_URL_PATTERN.match(image_base64):
            raise HTTPException(status_code=400, detail="Invalid image format")
        payload = image_base64.split(",", 1)[1]

    if not BASE64_PATTERN.match(payload):
        raise HTTPException(status_code=400, detail="Invalid image format")

    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail="Invalid image format")


def to_verification_response(result: VerificationResult) -> VerificationResponse:
    return VerificationResponse(
        is_valid_image=result.is_valid_image,
        image_validation_message=result.image_validation_message,
        is_duplicate=result.is_duplicate,
        duplicate_message=result.duplicate_message,
        location_warning=result.location_warning,
        distance_km=result.distance_km,
        award_points=result.award_points,
        points_to_award=result.points_to_award,
    )


async def _verify(
    data: VerificationRequest, db: AsyncSession, vision: VisionClient
) -> VerificationResult:
    if data.image_base64:
        decode_image(data.image_base64)

    verifier = RegistrationVerifier(db, vision)
    return await verifier.verify(
        product_id=data.product_id,
        store_id=data.store_id,
        image_base64=data.image_base64,
        user_latitude=data.user_latitude,
        user_longitude=data.user_longitude,
    )


@router.post("/verify", response_model=VerificationResponse)
async def verify_registration(
    data: VerificationRequest,
    db: AsyncSession = Depends(get_db),
    vision: VisionClient = Depends(get_vision_client),
):
    """
    Run the anti-fraud checks without registering.

    Invalid images block registration; duplicates within the window
    register without points; a distant GPS fix only warns.
    """
    result = await _verify(data, db, vision)
    return to_verification_response(result)


@router.post("/", response_model=RegistrationResponse, status_code=201)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def register_price(
    request: Request,
    data: RegistrationRequest,
    db: AsyncSession = Depends(get_db),
    vision: VisionClient = Depends(get_vision_client),
):
    """Verify and store a price registration, awarding points when eligible."""
    verification = await _verify(data, db, vision)

    phash: Optional[str] = None
    if data.image_base64:
        phash = image_phash(decode_image(data.image_base64))

    service = RegistrationService(db)
    try:
        outcome = await service.register_price(
            user_id=data.user_id,
            product_id=data.product_id,
            store_id=data.store_id,
            current_price=data.current_price,
            original_price=data.original_price,
            verification=verification,
            product_name=data.product_name,
            category=data.category,
            discount_period=data.discount_period,
            image_url=data.image_url,
            image_phash=phash,
        )
    except InvalidPriceTagImage as e:
        raise HTTPException(
            status_code=422,
            detail={"error": "invalid_image", "message": str(e)},
        )
    except DuplicateDiscountPeriod as e:
        raise HTTPException(
            status_code=409,
            detail={"error": "duplicate_discount_period", "message": str(e)},
        )
    except UnknownStore as e:
        raise HTTPException(status_code=404, detail=str(e))

    record = outcome.record
    return RegistrationResponse(
        price_history_id=record.id,
        product_id=record.product_id,
        store_id=record.store_id,
        selling_price=record.selling_price,
        current_price=record.current_price,
        discount_amount=record.discount_amount,
        discount_period=record.discount_period,
        verification=to_verification_response(verification),
        points_awarded=outcome.points_awarded,
        points_status=outcome.points_status,
    )


@router.post("/ocr", response_model=OcrResponse)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def read_price_tag(
    request: Request,
    data: OcrRequest,
    vision: VisionClient = Depends(get_vision_client),
):
    """
    Extract product and price fields from a price tag photo.

    Uses the vision gateway when configured, local Tesseract otherwise.
    """
    image_bytes = decode_image(data.image_base64)

    if not vision.configured:
        extraction = await ocr_service.extract_price_tag(image_bytes)
        if not extraction.success:
            raise HTTPException(
                status_code=422,
                detail={
                    "error": "ocr_failed",
                    "message": "가격표를 읽을 수 없습니다. 다시 촬영해주세요.",
                    "partial_data": {
                        "product_id": extraction.product_id,
                        "current_price": extraction.current_price,
                    },
                },
            )
    else:
        try:
            extraction = await vision.extract_price_tag(data.image_base64)
        except VisionRateLimited as e:
            raise HTTPException(status_code=429, detail=str(e))
        except VisionQuotaExceeded as e:
            raise HTTPException(status_code=402, detail=str(e))
        except VisionError as e:
            raise HTTPException(status_code=502, detail=str(e))

    return OcrResponse(
        product_id=extraction.product_id,
        product_name=extraction.product_name,
        current_price=extraction.current_price,
        original_price=extraction.original_price,
        discount_period=format_discount_period(extraction.discount_period),
        discount_active=is_discount_active(extraction.discount_period),
    )
