from fastapi import APIRouter

from app.api.v1.endpoints import admin, bulk_orders, health, ledger, orders

api_router = APIRouter()

# 1. System (Health)
api_router.include_router(health.router, tags=["System"])

# 2. Buyer checkout
api_router.include_router(orders.router, prefix="/orders", tags=["Orders"])

# 3. Distributor purchases + price list
api_router.include_router(bulk_orders.router, tags=["Bulk Orders"])

# 4. Distributor accounts
api_router.include_router(ledger.router, tags=["Ledger"])

# 5. Admin back office
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])
