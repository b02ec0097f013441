from ispsync.db.repo.agent_sales_repo import AgentSalesRepo
from ispsync.db.repo.invoices_repo import InvoicesRepo
from ispsync.db.repo.job_runs_repo import JobRunsRepo
from ispsync.db.repo.ledger_repo import LedgerRepo
from ispsync.db.repo.radius_repo import RadiusRepo
from ispsync.db.repo.subscribers_repo import SubscribersRepo
from ispsync.db.repo.vouchers_repo import VouchersRepo

__all__ = [
    "AgentSalesRepo",
    "InvoicesRepo",
    "JobRunsRepo",
    "LedgerRepo",
    "RadiusRepo",
    "SubscribersRepo",
    "VouchersRepo",
]
