"""Price tracker - FastAPI Backend"""
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from pricetracker.api import discount_periods, health, products, registrations, stores
from pricetracker.core.config import settings
from pricetracker.core.database import engine, AsyncSessionLocal
from pricetracker.core.logging import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()

    # Startup - initialize database
    from pricetracker.core.database import init_db
    await init_db()

    from pricetracker.services.seed_service import seed_data
    await seed_data()

    # Normalize legacy discount rows
    from pricetracker.services.price_service import PriceService
    async with AsyncSessionLocal() as db:
        service = PriceService(db)
        await service.backfill_discount_fields()
        await service.canonicalize_discount_periods()

    yield
    # Shutdown
    await engine.dispose()


app = FastAPI(
    title="Price Tracker API",
    description="Crowd-sourced warehouse club price tags, discounts and store comparison",
    version="1.0.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = registrations.limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(health.router, tags=["Health"])
app.include_router(stores.router, prefix="/api/v1/stores", tags=["Stores"])
app.include_router(products.router, prefix="/api/v1/products", tags=["Products"])
app.include_router(registrations.router, prefix="/api/v1/registrations", tags=["Registrations"])
app.include_router(discount_periods.router, prefix="/api/v1/discount-periods", tags=["Discount Periods"])
