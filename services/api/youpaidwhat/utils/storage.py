import io, os, re, shutil, hashlib, logging
from PIL import Image

from ..errors import DecodeError
from .redact import decode_raster, make_placeholder

logger = logging.getLogger("storage.py")

THUMBNAIL_SIZE = (300, 400)
THUMBNAIL_NAME = "thumbnail.jpg"
UPLOAD_STEM = "file"
_SAFE_EXT = re.compile(r"^\.[a-z0-9]{1,10}$")

def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()

def contract_dir(storage_dir: str, contract_id: str) -> str:
    path = os.path.join(storage_dir, "contracts", contract_id)
    os.makedirs(path, exist_ok=True)
    return path

def upload_name(filename: str | None) -> str:
    """Fixed on-disk name for an upload; only a plain extension survives from ``filename``."""
    ext = os.path.splitext(os.path.basename(filename or ""))[1].lower()
    return UPLOAD_STEM + ext if _SAFE_EXT.match(ext) else UPLOAD_STEM

def save_bytes(storage_dir: str, contract_id: str, name: str, data: bytes) -> str:
    path = os.path.join(contract_dir(storage_dir, contract_id), name)
    with open(path, "wb") as f:
        f.write(data)
    logger.info(f"Stored {len(data)} bytes at {path}")
    return path

def remove_contract_files(storage_dir: str, contract_id: str):
    path = os.path.join(storage_dir, "contracts", contract_id)
    if os.path.isdir(path):
        shutil.rmtree(path)
        logger.info(f"Removed {path}")

def make_thumbnail(content: bytes, size: tuple[int, int] = THUMBNAIL_SIZE) -> bytes:
    """JPEG thumbnail that fits inside ``size``; non-images get a grey card."""
    try:
        img = decode_raster(content).convert("RGB")
        img.thumbnail(size, Image.Resampling.LANCZOS)
    except DecodeError:
        img = make_placeholder(size, lines=((size[1] // 2, "PDF"),))
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=80)
    return buf.getvalue()

def iterfile(path: str):
    with open(path, "rb") as f:
        yield from f
