"""Store endpoints"""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from pricetracker.core.database import get_db
from pricetracker.models.store import Store
from pricetracker.schemas.store import StoreResponse, StoreListResponse

router = APIRouter()


@router.get("/", response_model=StoreListResponse)
async def list_stores(
    region: Optional[str] = Query(None, description="Filter by region (e.g. 서울, 경기)"),
    limit: int = Query(50, le=100),
    db: AsyncSession = Depends(get_db),
):
    """List stores, optionally filtered by region."""
    query = select(Store)

    if region:
        query = query.where(Store.region == region)

    query = query.order_by(Store.name).limit(limit)
    result = await db.execute(query)
    stores = result.scalars().all()

    return StoreListResponse(
        stores=[StoreResponse.model_validate(s) for s in stores],
        count=len(stores),
    )


@router.get("/{store_id}", response_model=StoreResponse)
async def get_store(
    store_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Get a specific store by ID."""
    store = await db.get(Store, store_id)

    if not store:
        raise HTTPException(status_code=404, detail="Store not found")

    return StoreResponse.model_validate(store)
