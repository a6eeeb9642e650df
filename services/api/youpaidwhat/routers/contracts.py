import json, logging, os, uuid
from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ..audit import save_audit
from ..auth import Identity, get_current_identity
from ..db import get_db
from ..models import Contract, ContractTag, RedactionRecord, STATUS_APPROVED, STATUS_PENDING
from ..schemas import ContractListOut, ContractOut, SubmissionOut
from ..settings import settings
from ..utils.price import format_cents, validate_price_cents, whole_dollars
from ..utils.storage import (
    THUMBNAIL_NAME, iterfile, make_thumbnail, remove_contract_files, save_bytes, sha256_hex, upload_name,
)
from ..wizard import clean_tags
from .redactions import parse_boxes

router = APIRouter(prefix="/contracts", tags=["contracts"])
logger = logging.getLogger("contracts.py")

SORT_ORDERS = {
    "newest": Contract.created_at.desc(),
    "oldest": Contract.created_at.asc(),
    "price-low": Contract.price_cents.asc(),
    "price-high": Contract.price_cents.desc(),
}

def contract_out(c: Contract) -> dict:
    per_unit = None
    if c.unit and c.quantity:
        per_unit = f"{format_cents(Decimal(c.price_cents) / Decimal(str(c.quantity)))}/{c.unit}"
    return {
        "id": c.id,
        "category": c.category,
        "region": c.region,
        "price_cents": c.price_cents,
        "unit": c.unit,
        "quantity": c.quantity,
        "description": c.description,
        "vendor_name": c.vendor_name,
        "filename": c.filename,
        "taken_on": c.taken_on,
        "created_at": c.created_at,
        "price_display": format_cents(c.price_cents, places=0),
        "price_per_unit": per_unit,
        "tags": [t.tag for t in c.tags],
        "redaction_count": len(c.redactions),
    }

def get_approved(db: Session, contract_id: str) -> Contract:
    c = db.get(Contract, contract_id)
    if not c or c.status != STATUS_APPROVED:
        raise HTTPException(status_code=404, detail="Contract not found")
    return c

def parse_price(price_cents: str | None) -> int:
    value: int | None = None
    if price_cents not in (None, ""):
        try:
            value = int(price_cents)
        except ValueError:
            raise HTTPException(status_code=422, detail="Price must be a whole number of cents")
    result = validate_price_cents(value, settings.MIN_PRICE_CENTS, settings.MAX_PRICE_CENTS)
    if not result.ok:
        raise HTTPException(status_code=422, detail=result.message)
    return value

@router.post("", response_model=SubmissionOut)
async def submit_contract(
    file: UploadFile = File(...),
    redactions: str = Form("[]"),
    category: str = Form(""),
    region: str = Form(""),
    price_cents: Optional[str] = Form(None),
    unit: Optional[str] = Form(None),
    quantity: Optional[float] = Form(None),
    description: Optional[str] = Form(None),
    vendor_name: Optional[str] = Form(None),
    taken_on: Optional[date] = Form(None),
    tags: List[str] = Form([]),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    category, region = category.strip(), region.strip()
    if not category or not region or price_cents in (None, ""):
        raise HTTPException(status_code=400, detail="Missing required fields: file, category, price, and region are required")
    cents = parse_price(price_cents)
    if quantity is not None and quantity <= 0:
        raise HTTPException(status_code=422, detail="Quantity must be a positive number")
    boxes = parse_boxes(redactions)

    contents = await file.read()
    if not contents:
        raise HTTPException(status_code=400, detail="Empty file")

    contract_id = str(uuid.uuid4())
    filename = os.path.basename(file.filename or "") or None
    thumb = await run_in_threadpool(make_thumbnail, contents, (settings.THUMBNAIL_WIDTH, settings.THUMBNAIL_HEIGHT))

    try:
        file_key = save_bytes(settings.STORAGE_DIR, contract_id, upload_name(filename), contents)
        thumb_key = save_bytes(settings.STORAGE_DIR, contract_id, THUMBNAIL_NAME, thumb)
        contract = Contract(
            id=contract_id,
            title=description or "Contract Upload",
            description=description or None,
            price_cents=cents,
            unit=unit or None,
            quantity=quantity,
            category=category,
            region=region,
            vendor_name=vendor_name or None,
            taken_on=taken_on,
            uploader_email=identity.email,
            filename=filename,
            file_key=file_key,
            thumb_key=thumb_key,
            mime_type=file.content_type or "application/octet-stream",
            sha256=sha256_hex(contents),
            status=STATUS_PENDING,
        )
        contract.tags = [ContractTag(tag=t) for t in clean_tags(tags)]
        contract.redactions = [RedactionRecord(x=b.x, y=b.y, width=b.width, height=b.height) for b in boxes]
        db.add(contract)
        save_audit(db, actor=identity.email, action="SUBMIT", contract_id=contract_id,
                   detail=json.dumps({"price_cents": cents, "redactions": len(boxes)}))
        db.commit()
    except Exception:
        db.rollback()
        remove_contract_files(settings.STORAGE_DIR, contract_id)
        logger.error("An error occurred in submit_contract", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")

    logger.info(f"Contract {contract_id} submitted by {identity.email}: {format_cents(cents)} ({cents} cents)")
    return {
        "success": True,
        "message": "Contract uploaded successfully",
        "contract_id": contract_id,
        "status": STATUS_PENDING,
    }

@router.get("", response_model=ContractListOut)
def list_contracts(
    category: Optional[str] = None,
    region: Optional[str] = None,
    q: Optional[str] = None,
    min: Optional[int] = Query(None, ge=0, description="whole dollars"),
    max: Optional[int] = Query(None, ge=0, description="whole dollars"),
    sort: str = "newest",
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    conditions = [Contract.status == STATUS_APPROVED]
    if category:
        conditions.append(Contract.category == category)
    if region:
        conditions.append(Contract.region == region)
    if q:
        like = f"%{q}%"
        conditions.append(or_(Contract.description.ilike(like), Contract.vendor_name.ilike(like)))
    if min is not None:
        conditions.append(Contract.price_cents >= min * 100)
    if max is not None:
        conditions.append(Contract.price_cents <= max * 100)

    order = SORT_ORDERS.get(sort, SORT_ORDERS["newest"])
    rows = db.execute(
        select(Contract).where(*conditions).order_by(order)
        .limit(page_size).offset((page - 1) * page_size)
    ).scalars().all()
    total = db.execute(select(func.count()).select_from(Contract).where(*conditions)).scalar_one()

    avg_c, min_c, max_c = db.execute(
        select(func.avg(Contract.price_cents), func.min(Contract.price_cents), func.max(Contract.price_cents))
        .where(Contract.status == STATUS_APPROVED)
    ).one()
    stats = None
    if avg_c is not None:
        stats = {"avg": whole_dollars(avg_c), "min": whole_dollars(min_c), "max": whole_dollars(max_c)}

    return {
        "items": [contract_out(c) for c in rows],
        "pagination": {"page": page, "page_size": page_size, "total": total},
        "stats": stats,
    }

@router.get("/{contract_id}", response_model=ContractOut)
def get_contract(contract_id: str, db: Session = Depends(get_db)):
    return contract_out(get_approved(db, contract_id))

def _stream(path: str | None, media_type: str):
    if not path or not os.path.exists(path):
        raise HTTPException(status_code=404, detail="File missing")
    return StreamingResponse(iterfile(path), media_type=media_type)

@router.get("/{contract_id}/file")
def get_contract_file(contract_id: str, db: Session = Depends(get_db)):
    c = get_approved(db, contract_id)
    return _stream(c.file_key, c.mime_type)

@router.get("/{contract_id}/thumbnail")
def get_contract_thumbnail(contract_id: str, db: Session = Depends(get_db)):
    c = get_approved(db, contract_id)
    return _stream(c.thumb_key, "image/jpeg")
