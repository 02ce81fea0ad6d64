"""Analytics ingestion API — tour hosts report metrics by external tour id."""

from fastapi import APIRouter, Depends, HTTPException

from ..datastore import DataStore
from ..dependencies import get_store
from ..schemas.requests import AnalyticsIngest
from ..services.analytics_service import IngestFailed, UnknownTour, ingest_analytics

router = APIRouter(tags=["analytics"])


@router.post("/api/analytics/ingest", status_code=201)
async def ingest(body: AnalyticsIngest, store: DataStore = Depends(get_store)):
    try:
        return await ingest_analytics(
            store, body.external_tour_id, body.date, body.metric_type, body.metric_value, body.metadata
        )
    except UnknownTour as e:
        raise HTTPException(404, str(e))
    except IngestFailed as e:
        raise HTTPException(503, f"Analytics ingestion failed: {e}")
