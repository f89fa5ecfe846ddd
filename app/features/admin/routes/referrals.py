import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.admin.schemas.referrals import UpdateStatusRequest
from app.features.admin.services.referrals import AdminReferralService
from app.features.admin.utils.auth import get_current_admin
from app.features.admin.utils.export import build_csv, export_filename
from app.platform.db.session import get_db
from app.platform.exceptions import InternalError
from app.platform.response import api_response
from app.platform.services.identity import AuthUser

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/referrals", tags=["Admin - Referrals"])


@router.get("/list", summary="List referrals")
async def list_referrals(
    q: Optional[str] = Query(None, description="Search in referred name/email/phone and referrer email"),
    status: Optional[str] = Query(None, description="Exact status filter"),
    limit: Optional[str] = Query(None, description="Page size, 1-100 (default 50)"),
    offset: Optional[str] = Query(None, description="Rows to skip (default 0)"),
    current_admin: AuthUser = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    service = AdminReferralService(db)
    try:
        status_filter = service.parse_status_filter(status)
        page_size, skip = service.parse_pagination(limit, offset)
        rows, total = await service.list_referrals(
            q=q, status=status_filter, limit=page_size, offset=skip
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error listing referrals: {e}")
        raise InternalError()

    return api_response(message="Referidos cargados.", data=rows, total=total)


@router.patch("/update-status", summary="Change a referral's status")
async def update_referral_status(
    body: UpdateStatusRequest,
    current_admin: AuthUser = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    service = AdminReferralService(db)
    try:
        referral = await service.update_status(body.id, body.status, admin=current_admin)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error updating referral status: {e}")
        raise InternalError()

    return api_response(message="Estado actualizado.", data=referral)


@router.get("/export", summary="Download referrals as CSV")
async def export_referrals(
    q: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    current_admin: AuthUser = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Same filters as /list. Pages through every matching row and returns a
    CSV file ready for Excel.
    """
    service = AdminReferralService(db)
    try:
        status_filter = service.parse_status_filter(status)
        rows = await service.export_rows(q=q, status=status_filter)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error exporting referrals: {e}")
        raise InternalError("No pudimos exportar.")

    content = build_csv(row.model_dump() for row in rows)
    logger.info(f"Admin {current_admin.id} exported {len(rows)} referral(s)")

    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
    )
