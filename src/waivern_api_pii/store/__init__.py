"""Persistence of analysed traffic and compliance reports."""

from waivern_api_pii.store.base import ANALYSIS_FIELDS, TrafficStore, build_document
from waivern_api_pii.store.in_memory import InMemoryTrafficStore
from waivern_api_pii.store.mongodb import MongoTrafficStore

__all__ = [
    "ANALYSIS_FIELDS",
    "InMemoryTrafficStore",
    "MongoTrafficStore",
    "TrafficStore",
    "build_document",
]
