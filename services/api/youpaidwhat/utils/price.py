"""
Dollar entry <-> integer cents.

Prices are typed in dollars and stored in cents. ``PriceNormalizer`` keeps
the typed text and the derived cents together so they cannot drift.
"""
import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, MAX_EMAX, MIN_EMIN, ROUND_HALF_UP, localcontext
from typing import Optional

from ..errors import PriceError, RequiredError, RangeError

logger = logging.getLogger("price.py")

MIN_PRICE_CENTS = 100            # $1.00
MAX_PRICE_CENTS = 100_000_000    # $1,000,000.00

_NOT_PRICE_CHAR = re.compile(r"[^0-9.]")


@dataclass(frozen=True)
class PriceState:
    cleaned_text: str = ""
    price_cents: Optional[int] = None
    preview: Optional[str] = None
    accepted: bool = True


@dataclass(frozen=True)
class ValidationResult:
    price_cents: Optional[int]
    error: Optional[PriceError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def message(self) -> Optional[str]:
        return str(self.error) if self.error else None


def parse_dollars(text: Optional[str], allow_negative: bool = False) -> Optional[Decimal]:
    """Finite Decimal, or None when ``text`` is not a number (or is negative, unless allowed)."""
    if text is None:
        return None
    try:
        value = Decimal(text.strip())
    except InvalidOperation:
        return None
    if not value.is_finite() or (value < 0 and not allow_negative):
        return None
    return value


def round_half_up(value: Decimal, places: int = 0, shift: int = 0) -> Decimal:
    """``value * 10**shift`` rounded half-up to ``places`` decimals.

    The context precision grows with the digit count, so input of any
    length is rounded exactly.
    """
    with localcontext() as ctx:
        ctx.Emax, ctx.Emin = MAX_EMAX, MIN_EMIN
        ctx.prec = max(ctx.prec, value.adjusted() + shift + places + 2)
        return value.scaleb(shift).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def dollars_to_cents(dollars: Decimal) -> int:
    return int(round_half_up(dollars, shift=2))


def parse_price_cents(text: Optional[str]) -> Optional[int]:
    dollars = parse_dollars(text)
    return None if dollars is None else dollars_to_cents(dollars)


def whole_dollars(cents) -> int:
    return int(round_half_up(Decimal(cents), shift=-2))


def format_cents(cents, places: int = 2) -> str:
    """``30000`` -> ``$300.00``. Fractional cents round half-up."""
    dollars = round_half_up(Decimal(cents), places, shift=-2)
    return f"${dollars:,.{places}f}"


def price_preview(cents: int) -> str:
    dollars = round_half_up(Decimal(cents), 2, shift=-2)
    return f"${dollars} ({Decimal(cents):,f} cents)"


def validate_price_cents(price_cents: Optional[int],
                         min_cents: int = MIN_PRICE_CENTS,
                         max_cents: int = MAX_PRICE_CENTS) -> ValidationResult:
    if price_cents is None or price_cents == "":
        return ValidationResult(None, RequiredError("Price is required"))
    if isinstance(price_cents, bool) or not isinstance(price_cents, int):
        return ValidationResult(None, RangeError("Price must be a whole number of cents"))
    if price_cents < min_cents:
        return ValidationResult(price_cents, RangeError(
            f"Price must be at least {format_cents(min_cents)} ({min_cents:,} cents)"))
    if price_cents > max_cents:
        return ValidationResult(price_cents, RangeError(f"Price cannot exceed {format_cents(max_cents)}"))
    return ValidationResult(price_cents)


class PriceNormalizer:
    """Text field state for a dollar amount."""

    def __init__(self, min_cents: int = MIN_PRICE_CENTS, max_cents: int = MAX_PRICE_CENTS):
        self.min_cents = min_cents
        self.max_cents = max_cents
        self.state = PriceState()

    @property
    def text(self) -> str:
        return self.state.cleaned_text

    @property
    def price_cents(self) -> Optional[int]:
        return self.state.price_cents

    def on_input_change(self, raw_text: str) -> PriceState:
        cleaned = _NOT_PRICE_CHAR.sub("", raw_text or "")
        parts = cleaned.split(".")
        if len(parts) > 2 or (len(parts) == 2 and len(parts[1]) > 2):
            # refuse the keystroke; keep what we had
            return PriceState(self.state.cleaned_text, self.state.price_cents,
                              self.state.preview, accepted=False)

        dollars = parse_dollars(cleaned) if cleaned else None
        if dollars is None:
            self.state = PriceState(cleaned)
        else:
            cents = dollars_to_cents(dollars)
            self.state = PriceState(cleaned, cents, price_preview(cents))
            logger.debug(f"Price input: {self.state.preview}")
        return self.state

    def on_blur(self, text: Optional[str] = None) -> str:
        """Reformat ``text`` (default: the current text) to two decimals when it is a number."""
        if text is None:
            text = self.state.cleaned_text
        dollars = parse_dollars(text, allow_negative=True) if text else None
        if dollars is None:
            return text
        formatted = str(round_half_up(dollars, 2))
        if text == self.state.cleaned_text:
            self.state = PriceState(formatted, self.state.price_cents, self.state.preview)
        return formatted

    def validate(self, price_cents: Optional[int] = None) -> ValidationResult:
        if price_cents is None:
            price_cents = self.state.price_cents
        return validate_price_cents(price_cents, self.min_cents, self.max_cents)
