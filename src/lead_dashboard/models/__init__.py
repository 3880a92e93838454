"""SQLAlchemy models for the lead dashboard."""

from lead_dashboard.models.base import Base
from lead_dashboard.models.lead import LEADS_TABLE, Lead

__all__ = [
    "Base",
    "Lead",
    "LEADS_TABLE",
]
