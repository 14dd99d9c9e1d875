import logging

from fastapi import FastAPI, Request
import uvicorn
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from db.database import create_db_and_tables, engine
from db.migrations import run_migrations
from core.auth import fastapi_users, auth_backend
from core.config import settings
from contextlib import asynccontextmanager
from routers.categories import router as categories_router
from routers.contacts import router as contacts_router
from routers.images import router as images_router
from routers.ingredients import router as ingredients_router
from routers.inventory import router as inventory_router
from routers.orders import router as orders_router
from routers.products import router as products_router
from routers.stats import router as stats_router
from routers.users import router as users_router
from schemas.users import UserRead, UserCreate, UserUpdate
from services.errors import InventoryError

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_db_and_tables()
    await run_migrations(engine)
    yield


app = FastAPI(
    title="Ribon Matchalatte API",
    description="Storefront and back office API for the Ribon Matchalatte drink shop",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(InventoryError)
async def inventory_error_handler(request: Request, exc: InventoryError):
    # 503 = transient (retry), 409 insufficient_stock = needs an admin to restock
    logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


# Authentication routes (fastapi-users)
app.include_router(fastapi_users.get_auth_router(auth_backend), prefix="/auth/jwt", tags=["auth"],)
app.include_router(fastapi_users.get_register_router(UserRead, UserCreate), prefix="/auth", tags=["auth"])
app.include_router(fastapi_users.get_reset_password_router(), prefix="/auth", tags=["auth"])
app.include_router(fastapi_users.get_verify_router(UserRead), prefix="/auth", tags=["auth"])
app.include_router(users_router, prefix="/users", tags=["users"])
app.include_router(fastapi_users.get_users_router(UserRead, UserUpdate), prefix="/users", tags=["users"])

# Image upload routes
app.include_router(images_router, prefix="/images", tags=["images"])

# Catalog
app.include_router(categories_router, prefix="/categories", tags=["categories"])
app.include_router(products_router, prefix="/products", tags=["products"])

# Inventory
app.include_router(ingredients_router, prefix="/ingredients", tags=["ingredients"])
app.include_router(inventory_router, prefix="/inventory", tags=["inventory"])

# Orders and back office
app.include_router(orders_router, prefix="/orders", tags=["orders"])
app.include_router(contacts_router, prefix="/contacts", tags=["contacts"])
app.include_router(stats_router, prefix="/stats", tags=["stats"])


@app.get("/", tags=["health"])
async def root():
    return {"message": "Ribon Matchalatte API is running"}


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
