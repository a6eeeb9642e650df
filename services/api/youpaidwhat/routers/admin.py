import logging
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..audit import save_audit
from ..auth import Identity, require_admin
from ..db import get_db
from ..models import Contract, STATUS_APPROVED, STATUS_PENDING, STATUS_REJECTED
from ..schemas import AdminContractOut, StatusUpdateIn, StatusUpdateOut

router = APIRouter(prefix="/admin", tags=["admin"])
logger = logging.getLogger("admin.py")

LISTABLE_STATUSES = {STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED, "ALL"}

@router.get("/contracts", response_model=List[AdminContractOut])
def list_for_review(status: str = STATUS_PENDING, admin: Identity = Depends(require_admin),
                    db: Session = Depends(get_db)):
    status = status.upper()
    if status not in LISTABLE_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid status: {status}")
    stmt = select(Contract).order_by(Contract.created_at.desc())
    if status != "ALL":
        stmt = stmt.where(Contract.status == status)
    rows = db.execute(stmt).scalars().all()
    logger.info(f"{admin.email} listed {len(rows)} contracts with status {status}")
    return [
        {
            "id": c.id,
            "category": c.category,
            "region": c.region,
            "price_cents": c.price_cents,
            "description": c.description,
            "vendor_name": c.vendor_name,
            "status": c.status,
            "uploader_email": c.uploader_email,
            "created_at": c.created_at,
            "tags": [t.tag for t in c.tags],
            "redactions": [{"x": r.x, "y": r.y, "width": r.width, "height": r.height} for r in c.redactions],
        }
        for c in rows
    ]

@router.post("/contracts/{contract_id}/status", response_model=StatusUpdateOut)
def update_status(contract_id: str, req: StatusUpdateIn, admin: Identity = Depends(require_admin),
                  db: Session = Depends(get_db)):
    c = db.get(Contract, contract_id)
    if not c:
        raise HTTPException(status_code=404, detail="Contract not found")

    logger.info(f"Admin {admin.email} updating contract {contract_id} status to: {req.status}")
    c.status = req.status
    c.updated_at = datetime.utcnow()
    save_audit(db, actor=admin.email, action="APPROVE" if req.status == STATUS_APPROVED else "REJECT",
               contract_id=contract_id)
    db.commit()

    if req.status == STATUS_APPROVED:
        approved = db.execute(
            select(func.count()).select_from(Contract)
            .where(Contract.uploader_email == c.uploader_email, Contract.status == STATUS_APPROVED)
        ).scalar_one()
        if approved == 1:
            logger.info(f"First approved contract for user {c.uploader_email}")

    return {
        "success": True,
        "message": f"Contract {req.status.lower()} successfully",
        "contract_id": contract_id,
        "status": req.status,
    }
