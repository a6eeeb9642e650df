"""
Five-step upload flow: Upload -> Redact -> Metadata -> Preview -> Submit.

Each wizard owns its own RedactionEngine and PriceNormalizer and is thrown
away after submission or cancellation. The network upload is done by the
``submitter`` callable handed in by the caller.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .errors import EncodeError, DecodeError
from .settings import settings
from .utils.price import PriceNormalizer, format_cents
from .utils.redact import RedactionEngine, RedactedAsset, SourceFile, SourceLayout, RedactionBox

logger = logging.getLogger("wizard.py")

REGION_NOT_SET = "Not Set"


class WizardStep(str, Enum):
    UPLOAD = "upload"
    REDACT = "redact"
    METADATA = "metadata"
    PREVIEW = "preview"
    SUBMITTED = "submitted"


STEP_ORDER = [WizardStep.UPLOAD, WizardStep.REDACT, WizardStep.METADATA,
              WizardStep.PREVIEW, WizardStep.SUBMITTED]


@dataclass
class ContractMetadata:
    category: str = ""
    region: str = ""
    unit: Optional[str] = None
    quantity: Optional[float] = None
    description: Optional[str] = None
    vendor_name: Optional[str] = None
    taken_on: Optional[date] = None
    tags: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Submission:
    file: RedactedAsset
    redactions: List[RedactionBox]
    price_cents: int
    metadata: ContractMetadata


class WizardError(Exception):
    """Raised when a step is invoked out of order."""


def clean_tags(tags: Optional[List[str]]) -> List[str]:
    out: List[str] = []
    for tag in tags or []:
        tag = (tag or "").strip()
        if tag and tag not in out:
            out.append(tag)
    return out


class UploadWizard:
    def __init__(self, submitter: Callable[[Submission], Any], region: str = REGION_NOT_SET):
        self.submitter = submitter
        self.region = region
        self.reset()

    def reset(self):
        self.step = WizardStep.UPLOAD
        self.engine = RedactionEngine(
            max_display_width=settings.MAX_DISPLAY_WIDTH,
            max_display_height=settings.MAX_DISPLAY_HEIGHT,
            min_box_size=settings.MIN_BOX_SIZE,
            jpeg_quality=settings.JPEG_QUALITY,
        )
        self.price = PriceNormalizer(settings.MIN_PRICE_CENTS, settings.MAX_PRICE_CENTS)
        self.layout: Optional[SourceLayout] = None
        self.degraded = False
        self.asset: Optional[RedactedAsset] = None
        self.metadata: Optional[ContractMetadata] = None
        self.errors: Dict[str, str] = {}
        self.error: Optional[str] = None
        self.result: Any = None

    def _expect(self, step: WizardStep):
        if self.step != step:
            raise WizardError(f"Expected step {step.value}, wizard is at {self.step.value}")

    def back(self) -> WizardStep:
        idx = STEP_ORDER.index(self.step)
        if 0 < idx < len(STEP_ORDER) - 1:
            self.step = STEP_ORDER[idx - 1]
        return self.step

    # Step 1
    def upload(self, source: SourceFile) -> SourceLayout:
        self._expect(WizardStep.UPLOAD)
        try:
            self.layout = self.engine.load_source(source)
            self.degraded = False
        except DecodeError as exc:
            logger.warning(f"Falling back to placeholder for {source.filename!r}: {exc}")
            self.layout = self.engine.load_placeholder(source)
            self.degraded = True
        self.error = None
        self.step = WizardStep.REDACT
        return self.layout

    # Step 2
    def finish_redaction(self) -> Optional[RedactedAsset]:
        self._expect(WizardStep.REDACT)
        try:
            self.asset = self.engine.finalize()
        except EncodeError as exc:
            logger.error(f"Error creating redacted file: {exc}")
            self.asset = None
            self.error = f"Error creating redacted file: {exc}. Please try again."
            return None
        self.error = None
        self.step = WizardStep.METADATA
        return self.asset

    # Step 3
    def set_metadata(self, price_text: str, category: str, unit: Optional[str] = None,
                     quantity: Optional[float] = None, description: Optional[str] = None,
                     vendor_name: Optional[str] = None, taken_on: Optional[date] = None,
                     tags: Optional[List[str]] = None) -> Dict[str, str]:
        self._expect(WizardStep.METADATA)
        errors: Dict[str, str] = {}

        state = self.price.on_input_change(price_text)
        if not state.accepted:
            errors["price_cents"] = "Price may have at most two decimal places"
        else:
            self.price.on_blur()
            result = self.price.validate()
            if not result.ok:
                errors["price_cents"] = result.message

        if not (category or "").strip():
            errors["category"] = "Category is required"
        if quantity is not None and quantity <= 0:
            errors["quantity"] = "Quantity must be a positive number"
        if not self.region or self.region == REGION_NOT_SET:
            errors["region"] = "You must set your state before uploading contracts"

        self.errors = errors
        if errors:
            return errors

        self.metadata = ContractMetadata(
            category=category.strip(),
            region=self.region,
            unit=unit or None,
            quantity=quantity,
            description=description or None,
            vendor_name=vendor_name or None,
            taken_on=taken_on,
            tags=clean_tags(tags),
        )
        self.step = WizardStep.PREVIEW
        return errors

    # Step 4
    def preview(self) -> Dict[str, Any]:
        self._expect(WizardStep.PREVIEW)
        return {
            "filename": self.asset.filename,
            "mime_type": self.asset.mime_type,
            "redaction_count": len(self.asset.redactions),
            "placeholder": self.degraded,
            "price": format_cents(self.price.price_cents),
            "price_cents": self.price.price_cents,
            "category": self.metadata.category,
            "region": self.metadata.region,
            "tags": list(self.metadata.tags),
        }

    # Step 5
    def submit(self) -> Any:
        self._expect(WizardStep.PREVIEW)
        submission = Submission(
            file=self.asset,
            redactions=list(self.asset.redactions),
            price_cents=self.price.price_cents,
            metadata=self.metadata,
        )
        logger.info(f"Submitting contract with price {format_cents(submission.price_cents)} "
                    f"({submission.price_cents} cents), {len(submission.redactions)} redactions")
        self.result = self.submitter(submission)
        self.step = WizardStep.SUBMITTED
        return self.result
