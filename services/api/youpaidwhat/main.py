import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .settings import settings
from .db import init_db
from .routers import admin, contracts, price, redactions

logging.basicConfig(level=settings.LOG_LEVEL)

app = FastAPI(title="You Paid What - Crowdsourced Pricing Transparency", version="0.1.0")

# CORS
origins = [o.strip() for o in settings.ALLOW_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Redactions", "X-Redactions-Ignored", "X-Placeholder"],
)

@app.on_event("startup")
async def on_startup():
    init_db()

@app.get("/health")
def health():
    return {"status": "healthy"}

app.include_router(redactions.router)
app.include_router(price.router)
app.include_router(contracts.router)
app.include_router(admin.router)
