"""
app/mappers package marker.
"""

from app.mappers.furips_record_mapper import (
    CoercionIssue,
    CoercionWarning,
    FuripsRecordMapper,
    MappedRows,
)

__all__ = [
    "CoercionIssue",
    "CoercionWarning",
    "FuripsRecordMapper",
    "MappedRows",
]
