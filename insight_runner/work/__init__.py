"""
Work Module
"""

from .insight_client import (
    HttpInsightUnitOfWork,
    InsightServiceClient,
    MockUnitOfWork,
    UnitOfWork,
)

__all__ = [
    "HttpInsightUnitOfWork",
    "InsightServiceClient",
    "MockUnitOfWork",
    "UnitOfWork",
]
