"""API tests over the ASGI app with an in-memory database."""
import base64

from conftest import add_price, utc
from pricetracker.services.vision import ImageValidation, TagExtraction, VisionRateLimited

IMAGE = base64.b64encode(b"fake-jpeg-bytes").decode()

PRODUCTS = "/api/v1/products/1234567"
REGISTRATIONS = "/api/v1/registrations"


async def test_health(client) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------

class TestStores:
    async def test_list(self, client, stores) -> None:
        response = await client.get("/api/v1/stores/")
        assert response.status_code == 200
        assert response.json()["count"] == 4

    async def test_region_filter(self, client, stores) -> None:
        response = await client.get("/api/v1/stores/", params={"region": "서울"})
        ids = {s["id"] for s in response.json()["stores"]}
        assert ids == {"yangjae", "sangbong"}

    async def test_get(self, client, stores) -> None:
        response = await client.get("/api/v1/stores/ilsan")
        assert response.status_code == 200
        assert response.json()["name"] == "일산점"

    async def test_missing(self, client, stores) -> None:
        response = await client.get("/api/v1/stores/nowhere")
        assert response.status_code == 404


# ---------------------------------------------------------------------------
# Product prices
# ---------------------------------------------------------------------------

class TestPriceHistory:
    async def test_unknown_product(self, client) -> None:
        response = await client.get("/api/v1/products/0000000/prices")
        assert response.status_code == 404

    async def test_same_discount_event_collapsed(self, db_session, client, stores, product) -> None:
        await add_price(db_session, "yangjae", utc(2026, 1, 5, 1), 25990, 22990,
                        discount_amount=3000, discounted_price=22990, discount_period="26.01.05 ~ 26.01.19")
        await add_price(db_session, "yangjae", utc(2026, 1, 6, 1), 25990, 22990,
                        discount_amount=3000, discounted_price=22990, discount_period="26.01.05 - 26.01.18")
        await add_price(db_session, "ilsan", utc(2025, 12, 1, 1), 25990, 25990)

        response = await client.get(f"{PRODUCTS}/prices", params={"today": "2026-01-10"})

        data = response.json()
        assert response.status_code == 200
        assert data["count"] == 2
        newest = data["records"][0]
        assert newest["store_name"] == "양재점"
        assert newest["discount_period"] == "26.01.05 - 26.01.18"
        assert newest["discount_start"] == "26.01.05"
        assert newest["is_discount_active"] is True
        assert newest["discount_percent"] == 12

    async def test_legacy_row_resolved(self, db_session, client, stores, product) -> None:
        await add_price(db_session, "yangjae", utc(2025, 12, 2, 1), 25000, 21990,
                        discount_price=21990, discount_period="12/01 - 12/14")

        response = await client.get(f"{PRODUCTS}/prices", params={"today": "2025-12-05"})

        record = response.json()["records"][0]
        assert record["discount_amount"] == 3010
        assert record["discounted_price"] == 21990
        assert record["discount_period"] == "25.12.01 - 25.12.14"


class TestComparison:
    async def test_groups_and_lowest(self, db_session, client, stores, product) -> None:
        await add_price(db_session, "yangjae", utc(2025, 12, 2, 1), 25990, 22990,
                        discount_amount=3000, discounted_price=22990, discount_period="25.12.01 - 25.12.14")
        await add_price(db_session, "ilsan", utc(2025, 12, 3, 1), 24990, 24990)
        await add_price(db_session, "sangbong", utc(2025, 12, 3, 1), 25990, 25990)

        response = await client.get(f"{PRODUCTS}/comparison", params={"today": "2025-12-05"})

        data = response.json()
        assert data["lowest"]["store_id"] == "yangjae"
        assert [r["store_id"] for r in data["discount_stores"]] == ["yangjae"]
        assert [r["store_id"] for r in data["regular_stores"]] == ["ilsan", "sangbong"]
        assert data["as_of"] == "2025-12-05"

    async def test_expired_discount_moves_to_regular(self, db_session, client, stores, product) -> None:
        await add_price(db_session, "yangjae", utc(2025, 12, 2, 1), 25990, 22990,
                        discount_amount=3000, discounted_price=22990, discount_period="25.12.01 - 25.12.14")

        response = await client.get(f"{PRODUCTS}/comparison", params={"today": "2025-12-15"})

        data = response.json()
        assert data["discount_stores"] == []
        assert [r["store_id"] for r in data["regular_stores"]] == ["yangjae"]

    async def test_no_records(self, client, product) -> None:
        response = await client.get(f"{PRODUCTS}/comparison")
        data = response.json()
        assert data["lowest"] is None
        assert data["discount_stores"] == []


class TestSummary:
    async def test_summary_and_chart(self, db_session, client, stores, product) -> None:
        await add_price(db_session, "yangjae", utc(2025, 12, 2, 1), 25990, 22990,
                        discount_amount=3000, discounted_price=22990, discount_period="25.12.01 - 25.12.14")
        await add_price(db_session, "ilsan", utc(2025, 11, 2, 1), 25990, 20990,
                        discount_amount=5000, discounted_price=20990, discount_period="25.11.01 ~ 25.11.14")
        await add_price(db_session, "sangbong", utc(2025, 12, 3, 1), 26990, 26990)

        response = await client.get(f"{PRODUCTS}/summary", params={"today": "2025-12-05"})

        data = response.json()
        assert data["max_discount_amount"] == 5000
        assert data["highest_selling_price"] == 26990
        assert data["lowest_current_price"] == 20990
        assert [(p["date"], p["price"]) for p in data["chart"]] == [("25.11.01", 20990), ("25.12.01", 22990)]


# ---------------------------------------------------------------------------
# Registrations
# ---------------------------------------------------------------------------

class TestRegistration:
    async def test_register_with_verified_image(self, client, stores, product, fake_vision) -> None:
        response = await client.post(f"{REGISTRATIONS}/", json={
            "user_id": "user-1",
            "product_id": "1234567",
            "store_id": "yangjae",
            "current_price": 22990,
            "original_price": 25990,
            "discount_period": "26.01.05 ~ 26.01.19",
            "image_base64": IMAGE,
        })

        assert response.status_code == 201
        data = response.json()
        assert data["discount_period"] == "26.01.05 - 26.01.19"
        assert data["discount_amount"] == 3000
        assert data["points_awarded"] == 5
        assert data["points_status"] == "confirmed"
        assert fake_vision.calls == 1

    async def test_duplicate_period_conflict(self, client, stores, product) -> None:
        body = {
            "user_id": "user-1",
            "product_id": "1234567",
            "store_id": "yangjae",
            "current_price": 22990,
            "original_price": 25990,
            "discount_period": "26.01.05 ~ 26.01.19",
        }
        first = await client.post(f"{REGISTRATIONS}/", json=body)
        second = await client.post(f"{REGISTRATIONS}/", json={**body, "user_id": "user-2"})

        assert first.status_code == 201
        assert second.status_code == 409
        assert second.json()["detail"]["error"] == "duplicate_discount_period"

    async def test_recent_registration_gets_no_points(self, client, stores, product) -> None:
        body = {"user_id": "user-1", "product_id": "1234567", "store_id": "yangjae", "current_price": 22990}
        await client.post(f"{REGISTRATIONS}/", json=body)
        response = await client.post(f"{REGISTRATIONS}/", json={**body, "user_id": "user-2"})

        assert response.status_code == 201
        data = response.json()
        assert data["points_awarded"] == 0
        assert data["verification"]["is_duplicate"] is True

    async def test_invalid_image_rejected(self, client, stores, fake_vision) -> None:
        fake_vision.validation = ImageValidation(is_valid=False, confidence=90, reason="가격표가 아닙니다")

        response = await client.post(f"{REGISTRATIONS}/", json={
            "user_id": "user-1",
            "product_id": "1234567",
            "store_id": "yangjae",
            "current_price": 22990,
            "image_base64": IMAGE,
        })

        assert response.status_code == 422
        assert response.json()["detail"]["error"] == "invalid_image"

    async def test_unknown_store(self, client, stores) -> None:
        response = await client.post(f"{REGISTRATIONS}/", json={
            "user_id": "user-1", "product_id": "1234567", "store_id": "nowhere", "current_price": 1000,
        })
        assert response.status_code == 404

    async def test_bad_base64(self, client, stores) -> None:
        response = await client.post(f"{REGISTRATIONS}/", json={
            "user_id": "user-1", "product_id": "1234567", "store_id": "yangjae",
            "current_price": 1000, "image_base64": "not base64!!",
        })
        assert response.status_code == 400

    async def test_non_positive_price(self, client, stores) -> None:
        response = await client.post(f"{REGISTRATIONS}/", json={
            "user_id": "user-1", "product_id": "1234567", "store_id": "yangjae", "current_price": 0,
        })
        assert response.status_code == 422


class TestVerify:
    async def test_location_warning(self, client, stores) -> None:
        response = await client.post(f"{REGISTRATIONS}/verify", json={
            "product_id": "1234567",
            "store_id": "ilsan",
            "user_latitude": 37.4630,
            "user_longitude": 127.0400,
        })

        data = response.json()
        assert response.status_code == 200
        assert data["location_warning"]
        assert data["award_points"] is True
        assert data["points_to_award"] == 5

    async def test_vision_outage_allows_registration(self, client, stores, fake_vision) -> None:
        fake_vision.error = VisionRateLimited("slow down")

        response = await client.post(f"{REGISTRATIONS}/verify", json={
            "product_id": "1234567", "store_id": "yangjae", "image_base64": IMAGE,
        })

        assert response.json()["is_valid_image"] is True


class TestOcr:
    async def test_vision_extraction(self, client, fake_vision) -> None:
        fake_vision.extraction = TagExtraction(
            product_id="1234567",
            product_name="커클랜드 올리브오일 2L",
            current_price=22990,
            original_price=25990,
            discount_period="26.01.05 ~ 26.01.19",
        )

        response = await client.post(f"{REGISTRATIONS}/ocr", json={"image_base64": f"data:image/png;base64,{IMAGE}"})

        data = response.json()
        assert response.status_code == 200
        assert data["product_id"] == "1234567"
        assert data["current_price"] == 22990
        assert data["discount_period"] == "26.01.05 - 26.01.19"

    async def test_vision_rate_limited(self, client, fake_vision) -> None:
        fake_vision.error = VisionRateLimited("slow down")

        response = await client.post(f"{REGISTRATIONS}/ocr", json={"image_base64": IMAGE})

        assert response.status_code == 429

    async def test_local_fallback_reports_failure(self, client, fake_vision) -> None:
        fake_vision.configured = False

        response = await client.post(f"{REGISTRATIONS}/ocr", json={"image_base64": IMAGE})

        assert response.status_code == 422
        assert response.json()["detail"]["error"] == "ocr_failed"
        assert fake_vision.calls == 0

    async def test_bad_data_url(self, client) -> None:
        response = await client.post(f"{REGISTRATIONS}/ocr", json={"image_base64": "data:text/plain;base64,AAAA"})
        assert response.status_code == 400


# ---------------------------------------------------------------------------
# Discount periods
# ---------------------------------------------------------------------------

class TestDiscountPeriodFormat:
    async def test_format(self, client) -> None:
        response = await client.post("/api/v1/discount-periods/format", json={
            "discount_period": "12/20 - 01/05",
            "today": "2025-12-25",
        })

        data = response.json()
        assert data["formatted"] == "25.12.20 - 26.01.05"
        assert data["parsable"] is True
        assert data["start"] == "2025-12-20"
        assert data["end"] == "2026-01-05"
        assert data["start_key"] == 251220
        assert data["is_active"] is True

    async def test_unparsable(self, client) -> None:
        response = await client.post("/api/v1/discount-periods/format", json={
            "discount_period": "garbage",
            "today": "2025-12-25",
        })

        data = response.json()
        assert data["formatted"] == "garbage"
        assert data["parsable"] is False
        assert data["is_active"] is False
