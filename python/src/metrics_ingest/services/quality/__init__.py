"""
Data Quality Services.

Advisory completeness, freshness and anomaly checks over fetched records.
"""

from .quality_auditor import DataQualityAuditor

__all__ = ["DataQualityAuditor"]
