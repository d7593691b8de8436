"""Seed service for initial data"""
import logging

from sqlalchemy import select

from pricetracker.core.database import AsyncSessionLocal
from pricetracker.models.store import Store

logger = logging.getLogger(__name__)

SEED_STORES = [
    dict(id='yangjae', name='양재점', region='서울', address='서울특별시 서초구 양재대로 159', latitude=37.4630, longitude=127.0400),
    dict(id='sangbong', name='상봉점', region='서울', address='서울특별시 중랑구 망우로 336', latitude=37.5960, longitude=127.0859),
    dict(id='yangpyeong', name='양평점', region='서울', address='서울특별시 영등포구 선유로 156', latitude=37.5263, longitude=126.8955),
    dict(id='ilsan', name='일산점', region='경기', address='경기도 고양시 일산서구 킨텍스로 171', latitude=37.6656, longitude=126.7490),
    dict(id='gwangmyeong', name='광명점', region='경기', address='경기도 광명시 일직로 40', latitude=37.4236, longitude=126.8828),
    dict(id='busan', name='부산점', region='부산', address='부산광역시 수영구 구락로 137', latitude=35.1701, longitude=129.1140),
    dict(id='daegu', name='대구점', region='대구', address='대구광역시 북구 검단로 97', latitude=35.9014, longitude=128.6139),
]


async def seed_data():
    """Seed initial stores if empty"""
    async with AsyncSessionLocal() as db:
        result = await db.execute(select(Store).limit(1))
        if result.scalar_one_or_none():
            return  # Already seeded

        db.add_all([Store(**store) for store in SEED_STORES])
        await db.commit()
        logger.info("Database seeded with %d stores", len(SEED_STORES))
