from fastapi import FastAPI
import asyncio
import logging
from fastapi.middleware.cors import CORSMiddleware

from walletwise.core.config import settings
from walletwise.api.routes.auth import router as auth_router
from walletwise.api.routes.users import router as users_router
from walletwise.api.routes.transactions import router as tx_router
from walletwise.api.routes.balance import router as balance_router
from walletwise.api.routes.dashboard import router as dashboard_router
from walletwise.api.routes.audit import router as audit_router
from walletwise.services.reconciliation import reconciliation_loop

logging.basicConfig(
    level=getattr(logging, (settings.log_level or "INFO").upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="WalletWise")

origins = [o.strip() for o in (settings.cors_origins or "").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/health")
@app.get("/api/health")
def health():
    return {"status": "ok"}

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(tx_router)
app.include_router(balance_router)
app.include_router(dashboard_router)
app.include_router(audit_router)

@app.on_event("startup")
async def _start_reconciliation():
    if getattr(settings, "reconcile_enabled", True):
        asyncio.create_task(reconciliation_loop())
