"""
Module principal de l'application FastAPI du moteur de commandes.

Configure l'instance FastAPI, le middleware CORS, les gestionnaires d'erreurs
communs et inclut les routeurs des commandes et des coupons.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from marketplace.config import settings
from marketplace.core.exceptions import register_exception_handlers
from marketplace.coupons.router import coupon_router
from marketplace.database import create_tables
from marketplace.orders.router import order_router

# Configurer le logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Création des tables si nécessaire...")
    await create_tables()
    yield


app = FastAPI(
    title="Marketplace Order Engine API",
    description="API de gestion des commandes multi-vendeurs: paniers, coupons, paiements et suivi de livraison.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Range"],
)

register_exception_handlers(app)

# ======================================================
# Inclure les routeurs
# ======================================================
app.include_router(order_router, prefix=settings.API_V1_PREFIX)
app.include_router(coupon_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
async def root():
    return {"success": True, "data": {"message": "Marketplace Order Engine API"}}
