from datetime import date, datetime
from pydantic import BaseModel, Field
from typing import List, Literal, Optional

class BoxIn(BaseModel):
    x: float = Field(ge=0, allow_inf_nan=False)
    y: float = Field(ge=0, allow_inf_nan=False)
    width: float = Field(ge=0, allow_inf_nan=False)
    height: float = Field(ge=0, allow_inf_nan=False)

class BoxOut(BaseModel):
    x: float
    y: float
    width: float
    height: float

class LayoutOut(BaseModel):
    display_width: int
    display_height: int
    scale: float
    placeholder: bool

class PriceNormalizeIn(BaseModel):
    text: str
    previous: str = ""  # last accepted text, kept when the new text is refused

class PriceStateOut(BaseModel):
    cleaned_text: str
    price_cents: Optional[int]
    preview: Optional[str]
    accepted: bool
    formatted: str

class PriceValidateIn(BaseModel):
    price_cents: Optional[int] = None

class PriceValidateOut(BaseModel):
    ok: bool
    price_cents: Optional[int]
    error: Optional[Literal["RequiredError", "RangeError"]] = None
    message: Optional[str] = None

class SubmissionOut(BaseModel):
    success: bool
    message: str
    contract_id: str
    status: str

class ContractOut(BaseModel):
    id: str
    category: str
    region: str
    price_cents: int
    unit: Optional[str]
    quantity: Optional[float]
    description: Optional[str]
    vendor_name: Optional[str]
    filename: Optional[str] = None
    taken_on: Optional[date]
    created_at: datetime
    price_display: str
    price_per_unit: Optional[str] = None
    tags: List[str] = []
    redaction_count: int = 0

class Pagination(BaseModel):
    page: int
    page_size: int
    total: int

class PriceStats(BaseModel):
    avg: int
    min: int
    max: int

class ContractListOut(BaseModel):
    items: List[ContractOut]
    pagination: Pagination
    stats: Optional[PriceStats]

class AdminContractOut(BaseModel):
    id: str
    category: str
    region: str
    price_cents: int
    description: Optional[str]
    vendor_name: Optional[str]
    status: str
    uploader_email: str
    created_at: datetime
    tags: List[str] = []
    redactions: List[BoxOut] = []

class StatusUpdateIn(BaseModel):
    status: Literal["APPROVED", "REJECTED"]

class StatusUpdateOut(BaseModel):
    success: bool
    message: str
    contract_id: str
    status: str
