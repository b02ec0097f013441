from ispsync.db.models.base import Base
from ispsync.db.models.hotspot import Agent, AgentSale, HotspotProfile, HotspotVoucher
from ispsync.db.models.invoices import Company, Invoice, MessageTemplate, ReminderSettings
from ispsync.db.models.job_runs import JobRun
from ispsync.db.models.ledger_entries import LedgerEntry
from ispsync.db.models.radius import Nas, RadAcct, RadCheck, RadReply, RadUserGroup
from ispsync.db.models.subscribers import PppoeProfile, PppoeUser

__all__ = [
    "Agent",
    "Base",
    "AgentSale",
    "Company",
    "HotspotProfile",
    "HotspotVoucher",
    "Invoice",
    "JobRun",
    "LedgerEntry",
    "MessageTemplate",
    "Nas",
    "PppoeProfile",
    "PppoeUser",
    "RadAcct",
    "RadCheck",
    "RadReply",
    "RadUserGroup",
    "ReminderSettings",
]
