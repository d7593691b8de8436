"""Price registration request/response schemas"""
from typing import Optional, Literal
from pydantic import BaseModel, Field


class VerificationRequest(BaseModel):
    """Anti-fraud check before a price registration"""
    product_id: str = Field(..., min_length=1, max_length=20)
    store_id: str = Field(..., min_length=1, max_length=36)
    image_base64: Optional[str] = Field(None, description="Price tag photo, optionally a data: URL")
    user_latitude: Optional[float] = Field(None, ge=-90, le=90)
    user_longitude: Optional[float] = Field(None, ge=-180, le=180)


class VerificationResponse(BaseModel):
    is_valid_image: bool
    image_validation_message: Optional[str] = None
    is_duplicate: bool
    duplicate_message: Optional[str] = None
    location_warning: Optional[str] = None
    distance_km: Optional[float] = None
    award_points: bool
    points_to_award: int


class RegistrationRequest(VerificationRequest):
    """Price tag registration (manual entry or OCR-assisted)"""
    user_id: str = Field(..., min_length=1, max_length=36)
    current_price: int = Field(..., gt=0, le=100_000_000, description="Price paid, in won")
    original_price: Optional[int] = Field(None, gt=0, le=100_000_000, description="Regular price on discount tags")
    product_name: Optional[str] = Field(None, max_length=200)
    category: Optional[str] = Field(None, max_length=50)
    discount_period: Optional[str] = Field(None, max_length=50)
    image_url: Optional[str] = None


class RegistrationResponse(BaseModel):
    price_history_id: str
    product_id: str
    store_id: str
    selling_price: int
    current_price: int
    discount_amount: Optional[int] = None
    discount_period: Optional[str] = None
    verification: VerificationResponse
    points_awarded: int
    points_status: Optional[Literal['pending', 'confirmed']] = None


class OcrRequest(BaseModel):
    image_base64: str = Field(..., min_length=1)


class OcrResponse(BaseModel):
    product_id: Optional[str] = None
    product_name: Optional[str] = None
    current_price: Optional[int] = None
    original_price: Optional[int] = None
    discount_period: Optional[str] = Field(None, description="Canonical form when parsable")
    discount_active: bool = False
