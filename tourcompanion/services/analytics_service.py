"""Analytics ingestion — record tour metrics reported by the tour host.

Tours are identified externally by external_tour_id; the project is resolved
from it and one Analytics row is inserted. The insert publishes a change event,
so subscribed dashboards refresh through the realtime coordinator.

Called by: routers/analytics.py
Depends on: utils/safe_query.py
"""

from datetime import date

from loguru import logger

from ..datastore import DataStore
from ..utils.safe_query import safe_insert, safe_single_query


class UnknownTour(LookupError):
    pass


class IngestFailed(RuntimeError):
    pass


async def ingest_analytics(
    store: DataStore,
    external_tour_id: str,
    metric_date: date,
    metric_type: str,
    metric_value: float,
    metadata: dict | None = None,
) -> dict:
    project = await safe_single_query(store, "projects", {"external_tour_id": external_tour_id})
    if not project.success:
        raise IngestFailed(project.error)
    if not project.data:
        raise UnknownTour(f"No project for tour {external_tour_id}")

    result = await safe_insert(
        store,
        "analytics",
        {
            "project_id": project.data["id"],
            "metric_type": metric_type,
            "metric_value": metric_value,
            "date": metric_date,
            "metadata": metadata or {},
        },
    )
    if not result.success:
        raise IngestFailed(result.error)

    logger.info(
        "Ingested {}={} for project {} ({})",
        metric_type, metric_value, project.data["id"], metric_date.isoformat(),
    )
    return result.data
