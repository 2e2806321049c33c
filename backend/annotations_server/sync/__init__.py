"""Reconciliation between edge caches and the durable store."""

from annotations_server.sync.caches import EdgeCache, FileEdgeCache, MemoryEdgeCache
from annotations_server.sync.reconciler import ReconcileResult, Reconciler, id_sets_diverge
from annotations_server.sync.sources import (
    AnnotationSource,
    HttpAnnotationSource,
    StoreAnnotationSource,
)

__all__ = [
    "Reconciler",
    "ReconcileResult",
    "id_sets_diverge",
    "EdgeCache",
    "MemoryEdgeCache",
    "FileEdgeCache",
    "AnnotationSource",
    "HttpAnnotationSource",
    "StoreAnnotationSource",
]
