from dataclasses import asdict

from fastapi import APIRouter

from ..schemas import PriceNormalizeIn, PriceStateOut, PriceValidateIn, PriceValidateOut
from ..settings import settings
from ..utils.price import PriceNormalizer

router = APIRouter(prefix="/price", tags=["price"])

def new_normalizer() -> PriceNormalizer:
    return PriceNormalizer(settings.MIN_PRICE_CENTS, settings.MAX_PRICE_CENTS)

@router.post("/normalize", response_model=PriceStateOut)
def normalize(req: PriceNormalizeIn):
    normalizer = new_normalizer()
    if req.previous:
        normalizer.on_input_change(req.previous)
    state = normalizer.on_input_change(req.text)
    return {**asdict(state), "formatted": normalizer.on_blur(state.cleaned_text)}

@router.post("/validate", response_model=PriceValidateOut)
def validate(req: PriceValidateIn):
    result = new_normalizer().validate(req.price_cents)
    return {
        "ok": result.ok,
        "price_cents": result.price_cents,
        "error": type(result.error).__name__ if result.error else None,
        "message": result.message,
    }
