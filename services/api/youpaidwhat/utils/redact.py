"""
Redaction canvas: users draw boxes on a down-scaled preview of an uploaded
image, and the boxes are burned into the full-resolution image as opaque
black before anything leaves the wizard.

Coordinates come in two spaces. Display space is the preview the user draws
on; source space is the decoded original. ``scale`` maps one to the other:
``source = display / scale``.
"""
import io
import logging
import math
import os
from dataclasses import dataclass, asdict
from typing import List, Optional, Tuple

import numpy as np
from PIL import Image, ImageDraw, ImageFont, ImageOps, UnidentifiedImageError

from ..errors import DecodeError, EncodeError

logger = logging.getLogger("redact.py")

MAX_DISPLAY_WIDTH = 800
MAX_DISPLAY_HEIGHT = 600
MIN_BOX_SIZE = 10
JPEG_QUALITY = 90

PLACEHOLDER_SIZE = (800, 600)
PLACEHOLDER_BACKGROUND = (240, 240, 240)
PLACEHOLDER_TEXT = (102, 102, 102)
PLACEHOLDER_LINES = (
    (250, "PDF Document"),
    (300, "Redaction support coming soon"),
    (350, "For now, you can redact this placeholder"),
)

# preview styling: rgba(0,0,0,0.8) fill, rgba(255,0,0,0.8) 2px border
BOX_FILL = (0, 0, 0, 204)
PENDING_FILL = (0, 0, 0, 128)
BOX_OUTLINE = (255, 0, 0, 204)
OUTLINE_WIDTH = 2

# mime -> (PIL format, output mime, extensions); anything else is re-encoded as PNG
ENCODERS = {
    "image/png": ("PNG", "image/png", (".png",)),
    "image/jpeg": ("JPEG", "image/jpeg", (".jpg", ".jpeg")),
    "image/jpg": ("JPEG", "image/jpeg", (".jpg", ".jpeg")),
}

Point = Tuple[float, float]


@dataclass(frozen=True)
class RedactionBox:
    """Axis-aligned rectangle; origin top-left, never negative."""
    x: float
    y: float
    width: float
    height: float

    def __post_init__(self):
        for name in ("x", "y", "width", "height"):
            value = getattr(self, name)
            if not math.isfinite(value) or value < 0:
                raise ValueError(f"RedactionBox.{name} must be finite and non-negative, got {value!r}")

    def scaled(self, scale: float) -> "RedactionBox":
        return RedactionBox(self.x / scale, self.y / scale, self.width / scale, self.height / scale)

    def pixel_bounds(self, size: Tuple[int, int]) -> Tuple[int, int, int, int]:
        """(left, top, right, bottom), right/bottom exclusive, covering every pixel the box touches."""
        w, h = size
        left = min(max(math.floor(self.x), 0), w)
        top = min(max(math.floor(self.y), 0), h)
        right = min(max(math.ceil(self.x + self.width), 0), w)
        bottom = min(max(math.ceil(self.y + self.height), 0), h)
        return left, top, right, bottom

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class SourceFile:
    filename: str
    content: bytes
    mime_type: str = "application/octet-stream"


@dataclass(frozen=True)
class SourceLayout:
    display_width: int
    display_height: int
    scale: float
    placeholder: bool = False


@dataclass(frozen=True)
class RedactedAsset:
    content: bytes
    filename: str
    mime_type: str
    redactions: Tuple[RedactionBox, ...]  # source coordinates
    passthrough: bool = False


def compute_scale(width: int, height: int,
                  max_width: float = MAX_DISPLAY_WIDTH,
                  max_height: float = MAX_DISPLAY_HEIGHT) -> float:
    if width <= 0 or height <= 0:
        raise ValueError(f"Image dimensions must be positive, got {width}x{height}")
    return min(max_width / width, max_height / height)


def decode_raster(content: bytes) -> Image.Image:
    """Decode bytes into a fully loaded, orientation-corrected image."""
    try:
        img = Image.open(io.BytesIO(content))
        img.load()
        img = ImageOps.exif_transpose(img)
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"Unsupported image format: {exc}") from exc
    if img.mode in ("RGBA", "LA", "PA") or "transparency" in img.info:
        return img.convert("RGBA")
    return img.convert("RGB")


def make_placeholder(size: Tuple[int, int] = PLACEHOLDER_SIZE,
                     lines=PLACEHOLDER_LINES) -> Image.Image:
    img = Image.new("RGB", size, PLACEHOLDER_BACKGROUND)
    draw = ImageDraw.Draw(img)
    font = ImageFont.load_default(size=24)
    for y, text in lines:
        left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
        x = (size[0] - (right - left)) / 2
        draw.text((x, y - (bottom - top) / 2), text, fill=PLACEHOLDER_TEXT, font=font)
    return img


def redact_with_boxes(img: Image.Image, boxes: List[RedactionBox]) -> Image.Image:
    # boxes are in the image's own coordinate space
    out = img.copy()
    draw = ImageDraw.Draw(out)
    fill = (0, 0, 0, 255) if out.mode == "RGBA" else (0, 0, 0)
    for box in boxes:
        left, top, right, bottom = box.pixel_bounds(out.size)
        if right <= left or bottom <= top:
            continue
        draw.rectangle((left, top, right - 1, bottom - 1), fill=fill)
    return out


def verify_redacted(img: Image.Image, boxes: List[RedactionBox]) -> bool:
    """True when every pixel under every box is opaque black."""
    arr = np.asarray(img)
    for box in boxes:
        left, top, right, bottom = box.pixel_bounds(img.size)
        region = arr[top:bottom, left:right]
        if region.size == 0:
            continue
        if np.any(region[..., :3] != 0):
            return False
        if region.shape[-1] == 4 and np.any(region[..., 3] != 255):
            return False
    return True


def output_format(mime_type: str) -> Tuple[str, str, Tuple[str, ...]]:
    return ENCODERS.get((mime_type or "").lower(), ENCODERS["image/png"])


def encode_raster(img: Image.Image, fmt: str, quality: int = JPEG_QUALITY) -> bytes:
    buf = io.BytesIO()
    try:
        if fmt == "JPEG":
            img.convert("RGB").save(buf, format=fmt, quality=quality)
        else:
            img.save(buf, format=fmt)
    except (OSError, ValueError, KeyError) as exc:
        raise EncodeError(f"Failed to encode redacted image as {fmt}: {exc}") from exc
    data = buf.getvalue()
    if not data:
        raise EncodeError(f"Encoder produced no data for {fmt}")
    return data


def redacted_filename(filename: str, extensions: Tuple[str, ...]) -> str:
    stem, ext = os.path.splitext(os.path.basename(filename) or "upload")
    if ext.lower() not in extensions:
        ext = extensions[0]
    return f"redacted_{stem}{ext}"


class RedactionEngine:
    """Working state for one upload: the source image, its display scale and the drawn boxes."""

    def __init__(self, max_display_width: float = MAX_DISPLAY_WIDTH,
                 max_display_height: float = MAX_DISPLAY_HEIGHT,
                 min_box_size: float = MIN_BOX_SIZE,
                 jpeg_quality: int = JPEG_QUALITY):
        self.max_display_width = max_display_width
        self.max_display_height = max_display_height
        self.min_box_size = min_box_size
        self.jpeg_quality = jpeg_quality

        self.boxes: List[RedactionBox] = []
        self.source: Optional[SourceFile] = None
        self.placeholder = False
        self.scale = 1.0
        self._placeholder_raster: Optional[Image.Image] = None
        self._display: Optional[Image.Image] = None

    # -- loading ---------------------------------------------------------

    def load_source(self, source: SourceFile) -> SourceLayout:
        raster = decode_raster(source.content)
        self.source = source
        self.placeholder = False
        self._placeholder_raster = None
        return self._establish(raster)

    def load_placeholder(self, source: SourceFile) -> SourceLayout:
        """Degraded mode: draw on a synthetic page, keep ``source`` for pass-through."""
        raster = make_placeholder()
        self.source = source
        self.placeholder = True
        self._placeholder_raster = raster
        return self._establish(raster)

    def open(self, source: SourceFile) -> SourceLayout:
        try:
            return self.load_source(source)
        except DecodeError as exc:
            logger.warning(f"Could not decode {source.filename!r} ({source.mime_type}), using placeholder: {exc}")
            return self.load_placeholder(source)

    def _establish(self, raster: Image.Image) -> SourceLayout:
        self.boxes = []
        self.scale = compute_scale(raster.width, raster.height,
                                   self.max_display_width, self.max_display_height)
        size = (max(1, math.floor(raster.width * self.scale + 1e-9)),
                max(1, math.floor(raster.height * self.scale + 1e-9)))
        self._display = raster.resize(size, Image.Resampling.LANCZOS).convert("RGBA")
        return self.layout

    @property
    def layout(self) -> SourceLayout:
        if self._display is None:
            raise RuntimeError("No source loaded")
        return SourceLayout(self._display.width, self._display.height, self.scale, self.placeholder)

    # -- box editing -----------------------------------------------------

    def add_box(self, start: Point, end: Point) -> Optional[RedactionBox]:
        """Register a drag gesture; returns None for drags smaller than ``min_box_size``."""
        (x1, y1), (x2, y2) = start, end
        for v in (x1, y1, x2, y2):
            if not math.isfinite(v) or v < 0:
                raise ValueError(f"Drag coordinates must be finite and non-negative, got {v!r}")
        box = RedactionBox(min(x1, x2), min(y1, y2), abs(x2 - x1), abs(y2 - y1))
        return self.add_rect(box)

    def add_rect(self, box: RedactionBox) -> Optional[RedactionBox]:
        if box.width < self.min_box_size or box.height < self.min_box_size:
            logger.debug(f"Ignoring redaction box below {self.min_box_size}px: {box}")
            return None
        self.boxes.append(box)
        return box

    def remove_box(self, index: int) -> RedactionBox:
        return self.boxes.pop(index)

    def clear_boxes(self):
        self.boxes = []

    @property
    def source_boxes(self) -> List[RedactionBox]:
        return [b.scaled(self.scale) for b in self.boxes]

    # -- drawing ---------------------------------------------------------

    def render(self, surface: Optional[Image.Image] = None,
               pending: Optional[Tuple[Point, Point]] = None) -> Image.Image:
        """Redraw the preview from scratch onto ``surface`` (display size, RGBA)."""
        if self._display is None:
            raise RuntimeError("No source loaded")
        if surface is None:
            surface = Image.new("RGBA", self._display.size)
        elif surface.size != self._display.size or surface.mode != "RGBA":
            raise ValueError(f"Surface must be RGBA {self._display.size}, got {surface.mode} {surface.size}")

        overlay = Image.new("RGBA", self._display.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(overlay)
        for box in self.boxes:
            self._draw_box(draw, box, BOX_FILL)
        if pending is not None:
            (x1, y1), (x2, y2) = pending
            drag = RedactionBox(max(min(x1, x2), 0), max(min(y1, y2), 0), abs(x2 - x1), abs(y2 - y1))
            self._draw_box(draw, drag, PENDING_FILL)

        surface.paste(Image.alpha_composite(self._display, overlay))
        return surface

    def _draw_box(self, draw: ImageDraw.ImageDraw, box: RedactionBox, fill):
        left, top, right, bottom = box.pixel_bounds(self._display.size)
        if right <= left or bottom <= top:
            return
        draw.rectangle((left, top, right - 1, bottom - 1), fill=fill,
                       outline=BOX_OUTLINE, width=OUTLINE_WIDTH)

    # -- output ----------------------------------------------------------

    def _full_resolution(self) -> Image.Image:
        if self.placeholder:
            return self._placeholder_raster.copy()
        return decode_raster(self.source.content)

    def finalize(self) -> RedactedAsset:
        if self.source is None:
            raise RuntimeError("No source loaded")

        if not self.boxes:
            logger.info(f"No redactions applied - using original file {self.source.filename!r}")
            return RedactedAsset(
                content=self.source.content,
                filename=self.source.filename,
                mime_type=self.source.mime_type,
                redactions=(),
                passthrough=True,
            )

        raster = self._full_resolution()
        scaled = self.source_boxes
        redacted = redact_with_boxes(raster, scaled)
        if not verify_redacted(redacted, scaled):
            raise EncodeError("Redacted pixels did not verify as opaque black")

        fmt, mime, extensions = output_format(self.source.mime_type)
        content = encode_raster(redacted, fmt, self.jpeg_quality)
        logger.info(f"Created redacted file with {len(scaled)} boxes: {len(content)} bytes {mime}")
        return RedactedAsset(
            content=content,
            filename=redacted_filename(self.source.filename, extensions),
            mime_type=mime,
            redactions=tuple(scaled),
        )
