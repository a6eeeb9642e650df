import io, json, logging
from dataclasses import asdict
from typing import List

from fastapi import APIRouter, UploadFile, File, Form, HTTPException, Response
from pydantic import TypeAdapter, ValidationError
from starlette.concurrency import run_in_threadpool

from ..errors import EncodeError
from ..schemas import BoxIn, LayoutOut
from ..settings import settings
from ..utils.redact import RedactionEngine, RedactionBox, SourceFile

router = APIRouter(prefix="/redactions", tags=["redactions"])
logger = logging.getLogger("redactions.py")

_boxes_adapter = TypeAdapter(List[BoxIn])

def new_engine() -> RedactionEngine:
    return RedactionEngine(
        max_display_width=settings.MAX_DISPLAY_WIDTH,
        max_display_height=settings.MAX_DISPLAY_HEIGHT,
        min_box_size=settings.MIN_BOX_SIZE,
        jpeg_quality=settings.JPEG_QUALITY,
    )

def parse_boxes(raw: str | None) -> List[BoxIn]:
    try:
        return _boxes_adapter.validate_python(json.loads(raw or "[]"))
    except (json.JSONDecodeError, ValidationError) as e:
        raise HTTPException(status_code=422, detail=f"Invalid redaction boxes: {e}")

async def read_source(file: UploadFile) -> SourceFile:
    contents = await file.read()
    if not contents:
        raise HTTPException(status_code=400, detail="Empty file")
    return SourceFile(
        filename=file.filename or "upload",
        content=contents,
        mime_type=file.content_type or "application/octet-stream",
    )

def load_engine(source: SourceFile, boxes: List[BoxIn]) -> tuple[RedactionEngine, int]:
    """Open ``source`` (placeholder on decode failure) and register display-space boxes."""
    engine = new_engine()
    engine.open(source)
    ignored = 0
    for b in boxes:
        if engine.add_rect(RedactionBox(b.x, b.y, b.width, b.height)) is None:
            ignored += 1
    return engine, ignored

@router.post("/layout", response_model=LayoutOut)
async def get_layout(file: UploadFile = File(...)):
    source = await read_source(file)
    engine = new_engine()
    layout = await run_in_threadpool(engine.open, source)
    return asdict(layout)

@router.post("/preview")
async def render_preview(file: UploadFile = File(...), boxes: str = Form("[]")):
    source = await read_source(file)
    engine, _ = await run_in_threadpool(load_engine, source, parse_boxes(boxes))
    img = await run_in_threadpool(engine.render)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return Response(content=buf.getvalue(), media_type="image/png")

@router.post("")
async def redact(file: UploadFile = File(...), boxes: str = Form("[]")):
    source = await read_source(file)
    engine, ignored = await run_in_threadpool(load_engine, source, parse_boxes(boxes))
    try:
        asset = await run_in_threadpool(engine.finalize)
    except EncodeError as e:
        logger.error(f"Error creating redacted file for {source.filename!r}: {e}")
        raise HTTPException(status_code=422, detail=f"Error creating redacted file: {e}")

    headers = {
        "X-Redactions": json.dumps([b.to_dict() for b in asset.redactions]),
        "X-Redactions-Ignored": str(ignored),
        "X-Placeholder": "true" if engine.placeholder else "false",
        "Content-Disposition": f'attachment; filename="{asset.filename}"',
    }
    return Response(content=asset.content, media_type=asset.mime_type, headers=headers)
