"""OCR Service for Korean warehouse price tags"""
import re
import io
import logging
from dataclasses import dataclass
from typing import List, Optional

import pytesseract
from PIL import Image
import imagehash
import cv2
import numpy as np

from pricetracker.core.config import settings
from pricetracker.services.discount import format_discount_period, parse_discount_period

logger = logging.getLogger(__name__)


@dataclass
class OCRExtraction:
    """Result of OCR extraction from price tag"""
    success: bool
    confidence: float

    product_id: Optional[str] = None
    product_name: Optional[str] = None
    current_price: Optional[int] = None
    original_price: Optional[int] = None
    discount_period: Optional[str] = None

    image_phash: Optional[str] = None
    error: Optional[str] = None


class OCRService:
    """
    Extract pricing data from Korean Costco price tags using Tesseract OCR.

    Tag layout typically includes:
    - Product number (7 digits)
    - Korean product name with weight/quantity
    - Price in won (15,990 / 15,990원 / ₩15,990)
    - On discount tags: the regular price, the amount off and the period
      (26.01.05 ~ 26.01.19)
    """

    PRODUCT_ID_PATTERN = re.compile(r'(?<!\d)(\d{7})(?!\d)')
    WON_PATTERN = re.compile(r'₩?\s*(\d{1,3}(?:,\d{3})+|\d{4,7})\s*원?')
    PERIOD_PATTERN = re.compile(
        r'\d{2}\.\d{2}\.\d{2}\s*[~-]\s*\d{2}\.\d{2}\.\d{2}'
        r'|\d{1,2}/\d{1,2}\s*-\s*\d{1,2}/\d{1,2}'
    )
    NAME_PATTERN = re.compile(r'[가-힣A-Za-z][가-힣A-Za-z0-9.]*')

    # Noise words printed on every tag
    SKIP_WORDS = {'원', '할인', '할인가', '판매가', '기간', '단가', 'costco', 'wholesale', 'kirkland'}

    def __init__(self):
        self.tesseract_config = '--oem 3 --psm 6'
        self.languages = settings.OCR_LANGUAGES

    async def extract_price_tag(self, image_bytes: bytes) -> OCRExtraction:
        """
        Extract pricing information from a price tag image.

        Returns OCRExtraction with all parsed fields and confidence score.
        """
        try:
            image = Image.open(io.BytesIO(image_bytes))
            processed = self._preprocess_image(image)

            # Perceptual hash for duplicate image detection
            phash = str(imagehash.phash(image))

            ocr_result = pytesseract.image_to_data(
                processed,
                lang=self.languages,
                config=self.tesseract_config,
                output_type=pytesseract.Output.DICT,
            )

            text_parts = []
            confidences = []
            for i, conf in enumerate(ocr_result['conf']):
                if float(conf) > 0:
                    text_parts.append(ocr_result['text'][i])
                    confidences.append(float(conf))

            full_text = ' '.join(text_parts)
            avg_confidence = sum(confidences) / len(confidences) / 100 if confidences else 0

        except (OSError, pytesseract.TesseractError, cv2.error) as e:
            logger.warning("OCR failed: %s", e)
            return OCRExtraction(success=False, confidence=0.0, error=str(e))

        extraction = self.parse_text(full_text)
        extraction.image_phash = phash

        # Adjust confidence based on what we found
        confidence = avg_confidence
        if not extraction.product_id:
            confidence *= 0.5
        if not extraction.current_price:
            confidence *= 0.3
        extraction.confidence = round(confidence, 2)

        return extraction

    def parse_text(self, text: str) -> OCRExtraction:
        """Parse recognised tag text into structured fields."""
        product_id = self._extract_product_id(text)
        period = self._extract_discount_period(text)
        # Period digits would otherwise be read as prices
        price_text = self.PERIOD_PATTERN.sub(' ', text)
        current_price, original_price = self._extract_prices(price_text, product_id)
        name = self._extract_name(price_text)

        return OCRExtraction(
            success=product_id is not None and current_price is not None,
            confidence=0.0,
            product_id=product_id,
            product_name=name,
            current_price=current_price,
            original_price=original_price,
            discount_period=period,
        )

    def _preprocess_image(self, image: Image.Image) -> Image.Image:
        """Preprocess image for better OCR accuracy on price tags."""
        img_array = np.array(image.convert('RGB'))
        gray = cv2.cvtColor(img_array, cv2.COLOR_RGB2GRAY)

        # Upscale small photos
        height, width = gray.shape
        if width < 1000:
            scale = 1000 / width
            gray = cv2.resize(gray, None, fx=scale, fy=scale, interpolation=cv2.INTER_CUBIC)

        # Increase contrast using CLAHE (helps with store lighting)
        clahe = cv2.createCLAHE(clipLimit=2.0, tileGridSize=(8, 8))
        enhanced = clahe.apply(gray)

        denoised = cv2.bilateralFilter(enhanced, 9, 75, 75)

        _, thresh = cv2.threshold(denoised, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)

        return Image.fromarray(thresh)

    def _extract_product_id(self, text: str) -> Optional[str]:
        """Extract the 7-digit product number."""
        match = self.PRODUCT_ID_PATTERN.search(text.replace(',', ' '))
        return match.group(1) if match else None

    def _extract_prices(
        self, text: str, product_id: Optional[str]
    ) -> tuple[Optional[int], Optional[int]]:
        """
        Extract (current_price, original_price) in won.

        Discount tags show the regular price, the amount off and the final
        price; the final price is the smallest value that is not the amount.
        """
        values: List[int] = []
        for match in self.WON_PATTERN.findall(text):
            if match == product_id:
                continue
            value = int(match.replace(',', ''))
            if value >= 100:
                values.append(value)

        if not values:
            return None, None

        highest = max(values)
        if len(values) == 1:
            return highest, None

        # amount + final == regular
        for value in values:
            if value != highest and (highest - value) in values:
                return max(value, highest - value), highest

        lowest = min(values)
        if lowest == highest:
            return highest, None
        return lowest, highest

    def _extract_discount_period(self, text: str) -> Optional[str]:
        match = self.PERIOD_PATTERN.search(text)
        if not match:
            return None
        raw = match.group()
        if parse_discount_period(raw) is None:
            return None
        return format_discount_period(raw)

    def _extract_name(self, text: str) -> Optional[str]:
        words = [
            w for w in self.NAME_PATTERN.findall(text)
            if w.lower() not in self.SKIP_WORDS and len(w) > 1
        ]
        return ' '.join(words[:8]) if words else None


def image_phash(image_bytes: bytes) -> Optional[str]:
    """Perceptual hash of an uploaded image, None when it can't be decoded."""
    try:
        return str(imagehash.phash(Image.open(io.BytesIO(image_bytes))))
    except OSError:
        return None
