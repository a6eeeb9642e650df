"""Domain errors raised by the redaction engine and the price normalizer."""


class RedactionError(Exception):
    """Base class for failures while loading or producing a redacted image."""


class DecodeError(RedactionError):
    """The source file could not be decoded as a raster image."""


class EncodeError(RedactionError):
    """The redacted raster could not be serialized."""


class PriceError(Exception):
    field = "price_cents"


class RequiredError(PriceError):
    pass


class RangeError(PriceError):
    pass
