"""Services built on the record store: queries, mutations, bulk operations."""

from annotations_server.services.annotation_service import AnnotationService
from annotations_server.services.bulk_mutator import BulkMutator
from annotations_server.services.project_context import ProjectContext, build_project_context
from annotations_server.services.query_engine import QueryEngine

__all__ = [
    "AnnotationService",
    "BulkMutator",
    "QueryEngine",
    "ProjectContext",
    "build_project_context",
]
