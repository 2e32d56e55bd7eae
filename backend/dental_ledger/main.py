import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from dental_ledger.core.errors import LedgerCoreError
from dental_ledger.core.settings import settings, validate_settings
from dental_ledger.db.session import SessionLocal, engine
from dental_ledger.models import Base
from dental_ledger.routers.audit import router as audit_router
from dental_ledger.routers.chart import router as chart_router
from dental_ledger.routers.invoices import router as invoices_router
from dental_ledger.routers.patients import router as patients_router
from dental_ledger.routers.procedures import router as procedures_router
from dental_ledger.routers.treatment_plan import (
    patient_router as patient_treatment_plan_router,
    router as treatment_items_router,
)
from dental_ledger.routers.users import router as users_router
from dental_ledger.services.users import seed_initial_admin

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

app = FastAPI(title="Dental Ledger API", version="0.1.0")
logger = logging.getLogger("dental_ledger.startup")


@app.exception_handler(LedgerCoreError)
async def ledger_error_handler(request: Request, exc: LedgerCoreError):
    request_id = request.headers.get("x-request-id")
    logger.info(
        "Rejected %s %s: %s", request.method, request.url.path, exc.detail,
        extra={"request_id": request_id},
    )
    payload = {
        "detail": exc.detail,
        "error": exc.error,
        "entity_type": exc.entity_type,
        "entity_id": exc.entity_id,
    }
    if request_id:
        payload["request_id"] = request_id
    return JSONResponse(status_code=exc.status_code, content=payload)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    request_id = request.headers.get("x-request-id")
    logger.exception("Unhandled server error", extra={"request_id": request_id})
    payload = {"detail": "Internal server error"}
    if request_id:
        payload["request_id"] = request_id
    return JSONResponse(status_code=500, content=payload)


@app.on_event("startup")
def startup():
    validate_settings(settings)
    Base.metadata.create_all(bind=engine)

    admin_email = str(settings.admin_email)
    db: Session = SessionLocal()
    try:
        created = seed_initial_admin(db, email=admin_email)
        if created:
            logger.info("Initial admin created for %s.", admin_email)
        else:
            logger.info("Initial admin not created (users already exist).")
    finally:
        db.close()


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(users_router)
app.include_router(patients_router)
app.include_router(procedures_router)
app.include_router(chart_router)
app.include_router(patient_treatment_plan_router)
app.include_router(treatment_items_router)
app.include_router(invoices_router)
app.include_router(audit_router)
