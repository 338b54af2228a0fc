from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_roles
from app.core.errors import NotFoundError
from app.core.security import ROLE_ADMIN, ROLE_DISTRIBUTOR, CurrentUser
from app.db.session import get_session
from app.schemas.requests import LedgerAdjustmentRequest
from app.schemas.responses import LedgerEntryOut, LedgerOut
from app.services.ledger.service import ledger_service

router = APIRouter()


@router.get("/distributors/me/ledger", response_model=LedgerOut)
async def my_ledger(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user: CurrentUser = Depends(require_roles(ROLE_DISTRIBUTOR)),
    session: AsyncSession = Depends(get_session),
):
    distributor = await ledger_service.get_distributor_by_user(session, user.id)
    if distributor is None:
        raise NotFoundError("No distributor account for this user", {"user_id": user.id})
    entries, _ = await ledger_service.list_entries(session, distributor.id, limit=limit, offset=offset)
    return {"distributor": distributor, "entries": entries}


@router.get("/admin/distributors/{distributor_id}/ledger", response_model=LedgerOut)
async def distributor_ledger(
    distributor_id: int,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    admin: CurrentUser = Depends(require_roles(ROLE_ADMIN)),
    session: AsyncSession = Depends(get_session),
):
    distributor = await ledger_service.get_distributor(session, distributor_id)
    entries, _ = await ledger_service.list_entries(session, distributor_id, limit=limit, offset=offset)
    return {"distributor": distributor, "entries": entries}


@router.post(
    "/admin/distributors/{distributor_id}/ledger",
    response_model=LedgerEntryOut,
    status_code=status.HTTP_201_CREATED,
)
async def post_ledger_entry(
    distributor_id: int,
    data: LedgerAdjustmentRequest,
    admin: CurrentUser = Depends(require_roles(ROLE_ADMIN)),
    session: AsyncSession = Depends(get_session),
):
    """💰 Payment received (always reduces the balance) or a signed manual adjustment."""
    return await ledger_service.record_adjustment(
        session, distributor_id, data.amount, data.entry_type, created_by=admin.id, notes=data.notes
    )
