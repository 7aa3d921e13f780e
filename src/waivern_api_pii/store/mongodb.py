"""MongoDB traffic store."""

import logging
from typing import Any, override

from pydantic import ValidationError
from pymongo import DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from waivern_api_pii.compliance import ComplianceReport, ComplianceStats
from waivern_api_pii.config import MongoTrafficStoreConfig
from waivern_api_pii.errors import (
    RecordNotFoundError,
    ReportNotFoundError,
    TrafficStoreError,
)
from waivern_api_pii.store.base import ANALYSIS_FIELDS, TrafficStore
from waivern_api_pii.types import TrafficDocument

# Type alias for MongoDB documents (schemaless by design)
MongoDocument = dict[str, Any]

logger = logging.getLogger(__name__)


class MongoTrafficStore(TrafficStore):
    """Traffic store backed by two MongoDB collections."""

    def __init__(
        self,
        records: Collection[MongoDocument],
        reports: Collection[MongoDocument],
    ) -> None:
        """Initialise the store with its collections.

        Args:
            records: Collection of traffic documents
            reports: Collection of compliance reports

        """
        self._records = records
        self._reports = reports

    @classmethod
    def from_config(cls, config: MongoTrafficStoreConfig) -> "MongoTrafficStore":
        """Connect to MongoDB using the given configuration."""
        client: MongoClient[MongoDocument] = MongoClient(
            config.uri,
            serverSelectionTimeoutMS=config.timeout_ms,
            socketTimeoutMS=config.timeout_ms,
        )
        db = client[config.database]
        logger.info("Using MongoDB database %s", config.database)
        return cls(db[config.records_collection], db[config.reports_collection])

    @override
    def save_record(self, document: TrafficDocument) -> None:
        api_endpoint, method = document.key
        try:
            self._records.replace_one(
                {"api_endpoint": api_endpoint, "method": method},
                document.model_dump(mode="python"),
                upsert=True,
            )
        except PyMongoError as e:
            raise TrafficStoreError(
                f"Failed to save traffic record {method} {api_endpoint}: {e}"
            ) from e

    @override
    def find_all(self) -> list[TrafficDocument]:
        return self._find({})

    @override
    def find_with_pii(self) -> list[TrafficDocument]:
        return self._find({"has_pii": True})

    def _find(self, query: MongoDocument) -> list[TrafficDocument]:
        try:
            raw_documents = list(self._records.find(query))
        except PyMongoError as e:
            raise TrafficStoreError(f"Failed to read traffic records: {e}") from e

        documents: list[TrafficDocument] = []
        for raw in raw_documents:
            try:
                documents.append(TrafficDocument.model_validate(raw))
            except ValidationError as e:
                logger.warning(
                    "Skipping malformed traffic record %s: %s", raw.get("_id"), e
                )
        return documents

    @override
    def update_findings(
        self, api_endpoint: str, method: str, document: TrafficDocument
    ) -> None:
        data = document.model_dump(mode="python", include=set(ANALYSIS_FIELDS))
        try:
            result = self._records.update_one(
                {"api_endpoint": api_endpoint, "method": method}, {"$set": data}
            )
        except PyMongoError as e:
            raise TrafficStoreError(
                f"Failed to update traffic record {method} {api_endpoint}: {e}"
            ) from e
        if result.matched_count == 0:
            raise RecordNotFoundError(f"No traffic record for {method} {api_endpoint}")

    @override
    def save_report(self, report: ComplianceReport) -> None:
        try:
            self._reports.insert_one(report.model_dump(mode="python"))
        except PyMongoError as e:
            raise TrafficStoreError(f"Failed to save compliance report: {e}") from e

    @override
    def latest_report(self) -> ComplianceReport:
        try:
            raw = self._reports.find_one(sort=[("created_at", DESCENDING)])
        except PyMongoError as e:
            raise TrafficStoreError(f"Failed to read compliance report: {e}") from e
        if raw is None:
            raise ReportNotFoundError("No compliance report has been saved")
        raw.pop("_id", None)
        return ComplianceReport.model_validate(raw)

    @override
    def compliance_stats(self) -> ComplianceStats:
        pipeline: list[MongoDocument] = [
            {"$match": {"has_pii": True}},
            {
                "$group": {
                    "_id": "$highest_risk",
                    "records": {"$sum": 1},
                    "findings": {"$sum": "$pii_count"},
                }
            },
        ]
        try:
            total = self._records.count_documents({})
            groups = list(self._records.aggregate(pipeline))
        except PyMongoError as e:
            raise TrafficStoreError(f"Failed to aggregate compliance stats: {e}") from e

        return ComplianceStats(
            total_analyzed=total,
            with_pii=sum(group["records"] for group in groups),
            total_findings=sum(group["findings"] for group in groups),
            risk_level_counts={group["_id"]: group["records"] for group in groups},
        )
