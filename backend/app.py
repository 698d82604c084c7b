"""
Barangay Health Backend API
===========================
Risk roster, health record writes and notification feeds for barangay
health workers and the mothers they follow.

POLICY: risk labels come only from the rule-based classifier. Health
workers may acknowledge a mother (status), never relabel her.
"""

import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from barangay_health import __version__
from barangay_health.config import settings
from barangay_health.modules import faq_bot
from barangay_health.modules.appointments import sync_appointment_statuses
from barangay_health.modules.data_gateway import (
    BUCKETS, CHATBOT_QA, DataGateway, GatewayError, JsonFileGateway, LocalBlobStorage, RecordNotFound,
)
from barangay_health.modules.health_records import delete_health_record, save_health_record
from barangay_health.modules.notification_compiler import (
    compile_feed, compile_feed_for_user, dismiss, read_ids, resolve_mother_id, unread_only,
)
from barangay_health.modules.risk_aggregator import RiskAggregator, filter_label, search, summary
from barangay_health.modules.risk_poller import RiskPoller
from barangay_health.modules import staff_notifications

# ── Logging ───────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# ── Shared state ──────────────────────────────────────────────────────────────
GATEWAY: DataGateway = JsonFileGateway(settings.DATA_DIR)
BLOBS = LocalBlobStorage(settings.BLOB_DIR, settings.PUBLIC_URL)
AGGREGATOR = RiskAggregator(GATEWAY)
POLLER = RiskPoller(GATEWAY, AGGREGATOR, settings.RISK_POLL_INTERVAL_SEC,
                    reminder_window_days=settings.REMINDER_WINDOW_DAYS)


def get_gateway() -> DataGateway:
    return GATEWAY


def get_aggregator() -> RiskAggregator:
    return AGGREGATOR


def get_blobs() -> LocalBlobStorage:
    return BLOBS


def _http_error(exc: Exception) -> HTTPException:
    """Turn a gateway or validation failure into a response the UI can show."""
    if isinstance(exc, RecordNotFound):
        return HTTPException(status_code=404, detail=exc.message)
    if isinstance(exc, GatewayError):
        logger.error(f"Data access failed: {exc.message}")
        return HTTPException(status_code=502, detail=exc.message)
    return HTTPException(status_code=400, detail=str(exc))


# ════════════════════════════════════════════════════════════════════════════
# DATA MODELS
# ════════════════════════════════════════════════════════════════════════════

class HealthRecordRequest(BaseModel):
    mother_id: str = Field(..., description="Mother the encounter belongs to")
    encounter_date: date = Field(..., description="YYYY-MM-DD")
    weight: Optional[float] = Field(None, description="kg")
    height: Optional[float] = Field(None, description="cm")
    blood_pressure: Optional[str] = Field(None, description="Systolic/diastolic, e.g. 120/80")
    temperature: Optional[float] = Field(None, description="Degrees Celsius")
    pulse_rate: Optional[int] = None
    respiratory_rate: Optional[int] = None
    heart_rate: Optional[int] = None
    hemoglobin_level: Optional[float] = None
    weeks_of_gestation: Optional[int] = None
    diabetes: bool = False
    hypertension: bool = False
    notes: Optional[str] = None
    attachment_path: Optional[str] = None

    class Config:
        json_schema_extra = {"example": {
            "mother_id": "m-001", "encounter_date": "2025-03-01",
            "weight": 58.5, "height": 155, "blood_pressure": "150/95",
            "temperature": 37.0, "diabetes": False, "hypertension": False,
            "notes": "Advised to rest and return in one week",
        }}


class StatusRequest(BaseModel):
    status: str = Field(..., description="Pending, Reviewed or Stable")


class DismissRequest(BaseModel):
    id: str
    source_type: str


class BroadcastRequest(BaseModel):
    title: str
    message: str
    type: str = "reminder"
    mother_ids: List[str] = Field(default_factory=list)
    all_mothers: bool = False


class ChatRequest(BaseModel):
    question: str


# ════════════════════════════════════════════════════════════════════════════
# FASTAPI APP + LIFESPAN
# ════════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("=" * 60)
    logger.info("Barangay Health Backend API - Starting")
    logger.info(f"  Data store : {settings.DATA_DIR.absolute()}")
    logger.info(f"  Blob store : {settings.BLOB_DIR.absolute()}")
    logger.info("=" * 60)

    POLLER.start()

    yield

    await POLLER.stop()
    logger.info("Shutting down Barangay Health Backend API")


app = FastAPI(
    title="Barangay Health Backend API",
    version=__version__,
    description="Maternal risk monitoring and reminders for barangay health workers",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ════════════════════════════════════════════════════════════════════════════
# ROUTES
# ════════════════════════════════════════════════════════════════════════════

@app.get("/")
async def root():
    return {
        "service": "Barangay Health Backend API",
        "version": __version__,
        "status":  "running",
        "polling": POLLER.running,
    }


@app.get("/api/v1/health")
def health():
    return {"service": "Barangay Health Backend", "status": "ok"}


# ── Risk roster ───────────────────────────────────────────────────────────────

@app.get("/api/v1/risks")
async def risk_roster(
    zone: Optional[str] = Query(None),
    q: Optional[str] = Query(None, description="Name search"),
    label: Optional[str] = Query(None),
    aggregator: RiskAggregator = Depends(get_aggregator),
):
    try:
        result = await aggregator.run(zone=zone)
    except GatewayError as e:
        raise _http_error(e)
    roster = filter_label(search(result['roster'], q), label)
    return {
        "roster":  roster,
        "summary": summary(result['roster']),
        "notice":  result['notice'],
    }


@app.post("/api/v1/risks/{mother_id}/status")
async def set_risk_status(
    mother_id: str,
    body: StatusRequest,
    aggregator: RiskAggregator = Depends(get_aggregator),
):
    try:
        return await aggregator.mark_status(mother_id, body.status)
    except (GatewayError, ValueError) as e:
        raise _http_error(e)


# ── Health records ────────────────────────────────────────────────────────────

@app.post("/api/v1/health-records", status_code=201)
async def create_health_record(
    body: HealthRecordRequest,
    gateway: DataGateway = Depends(get_gateway),
    aggregator: RiskAggregator = Depends(get_aggregator),
):
    try:
        return await save_health_record(gateway, aggregator, body.model_dump(mode="json", exclude_none=True))
    except (GatewayError, ValueError) as e:
        raise _http_error(e)


@app.put("/api/v1/health-records/{record_id}")
async def update_health_record(
    record_id: str,
    body: HealthRecordRequest,
    gateway: DataGateway = Depends(get_gateway),
    aggregator: RiskAggregator = Depends(get_aggregator),
):
    try:
        return await save_health_record(gateway, aggregator, body.model_dump(mode="json"), record_id=record_id)
    except (GatewayError, ValueError) as e:
        raise _http_error(e)


@app.delete("/api/v1/health-records/{record_id}")
async def remove_health_record(
    record_id: str,
    gateway: DataGateway = Depends(get_gateway),
    aggregator: RiskAggregator = Depends(get_aggregator),
):
    try:
        assessment = await delete_health_record(gateway, aggregator, record_id)
    except GatewayError as e:
        raise _http_error(e)
    return {"status": "deleted", "assessment": assessment}


# ── Mother feed ───────────────────────────────────────────────────────────────

@app.get("/api/v1/mothers/{mother_id}/notifications")
async def mother_feed(
    mother_id: str,
    unread: bool = Query(False, description="Hide items the mother dismissed"),
    gateway: DataGateway = Depends(get_gateway),
):
    try:
        items = await compile_feed(
            gateway, mother_id,
            window_days=settings.REMINDER_WINDOW_DAYS,
            material_limit=settings.MATERIAL_FEED_LIMIT,
        )
        if unread and items:
            items = unread_only(items, await read_ids(gateway, mother_id))
    except GatewayError as e:
        raise _http_error(e)
    return items


@app.get("/api/v1/me/notifications")
async def my_feed(
    x_user_id: Optional[str] = Header(None),
    unread: bool = Query(False),
    gateway: DataGateway = Depends(get_gateway),
):
    try:
        items = await compile_feed_for_user(
            gateway, x_user_id,
            window_days=settings.REMINDER_WINDOW_DAYS,
            material_limit=settings.MATERIAL_FEED_LIMIT,
        )
        if unread and items:
            mother_id = await resolve_mother_id(gateway, x_user_id)
            items = unread_only(items, await read_ids(gateway, mother_id))
    except GatewayError as e:
        raise _http_error(e)
    return items


@app.post("/api/v1/mothers/{mother_id}/notifications/dismiss")
async def dismiss_item(
    mother_id: str,
    body: DismissRequest,
    gateway: DataGateway = Depends(get_gateway),
):
    try:
        await dismiss(gateway, mother_id, body.id, body.source_type)
    except (GatewayError, ValueError) as e:
        raise _http_error(e)
    return {"status": "ok"}


# ── Staff notifications ───────────────────────────────────────────────────────

@app.get("/api/v1/notifications")
async def stored_notifications(
    type: Optional[str] = Query(None),
    gateway: DataGateway = Depends(get_gateway),
):
    try:
        items = await staff_notifications.list_notifications(gateway, type)
    except GatewayError as e:
        raise _http_error(e)
    return {"items": items, "unread": sum(1 for n in items if not n.get('is_read'))}


@app.post("/api/v1/notifications/broadcast", status_code=201)
async def broadcast_notification(body: BroadcastRequest, gateway: DataGateway = Depends(get_gateway)):
    try:
        targets = await staff_notifications.all_mother_ids(gateway) if body.all_mothers else body.mother_ids
        sent = await staff_notifications.broadcast(gateway, body.title, body.message, body.type, targets)
    except (GatewayError, ValueError) as e:
        raise _http_error(e)
    return {"status": "sent", "count": len(sent)}


@app.post("/api/v1/notifications/read-all")
async def read_all(gateway: DataGateway = Depends(get_gateway)):
    try:
        count = await staff_notifications.mark_all_read(gateway)
    except GatewayError as e:
        raise _http_error(e)
    return {"status": "ok", "updated": count}


@app.post("/api/v1/notifications/{notification_id}/read")
async def read_one(notification_id: str, gateway: DataGateway = Depends(get_gateway)):
    try:
        return await staff_notifications.mark_read(gateway, notification_id)
    except GatewayError as e:
        raise _http_error(e)


# ── Appointments ──────────────────────────────────────────────────────────────

@app.post("/api/v1/appointments/sync")
async def sync_appointments(gateway: DataGateway = Depends(get_gateway)):
    try:
        statuses = await sync_appointment_statuses(gateway)
        reminders = await staff_notifications.sync_upcoming_reminders(
            gateway, window_days=settings.REMINDER_WINDOW_DAYS)
    except GatewayError as e:
        raise _http_error(e)
    return {"statuses": statuses, "reminders_created": reminders}


# ── FAQ bot ───────────────────────────────────────────────────────────────────

@app.post("/api/v1/chatbot")
async def chatbot(body: ChatRequest, gateway: DataGateway = Depends(get_gateway)):
    try:
        entries = await gateway.query(CHATBOT_QA)
    except GatewayError as e:
        raise _http_error(e)
    answer = faq_bot.reply(body.question, entries)
    if answer is None:
        raise HTTPException(status_code=400, detail="Please type a question.")
    return {"answer": answer}


# ── Files ─────────────────────────────────────────────────────────────────────

@app.post("/api/v1/files/{bucket}", status_code=201)
async def upload_file(
    bucket: str,
    request: Request,
    path: str = Query(..., description="Path inside the bucket"),
    blobs: LocalBlobStorage = Depends(get_blobs),
):
    if bucket not in BUCKETS:
        raise HTTPException(status_code=404, detail=f"Unknown bucket '{bucket}'")
    data = await request.body()
    if not data:
        raise HTTPException(status_code=400, detail="Empty upload")
    try:
        stored = await blobs.upload(bucket, path, data)
        url = blobs.get_public_url(bucket, stored)
    except (GatewayError, ValueError) as e:
        raise _http_error(e)
    return {"path": stored, "url": url}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host=settings.HOST,
        port=settings.PORT,
        workers=1,
        log_level="info",
    )
