"""
Cash-Up Engine - System Constants
=================================
"""

# API Version
API_VERSION = "1.0.0"
API_PREFIX = "/v1"

# Roles
ROLE_ADMIN = "admin"
ROLE_CASHUP_REVIEWER = "cashup_reviewer"
EVIDENCE_UPLOAD_ROLES = (ROLE_ADMIN, ROLE_CASHUP_REVIEWER)
REVIEW_DECISION_ROLES = (ROLE_ADMIN, ROLE_CASHUP_REVIEWER)
REVIEWER_NOTE_ROLES = (ROLE_CASHUP_REVIEWER,)

# Reconciliation (absolute currency units, not percent)
BALANCE_TOLERANCE = 0.01

# Daily cutoff + grace period for late submissions
CUTOFF_HOUR = 20
CUTOFF_MINUTE = 0
GRACE_PERIOD_MINUTES = 30

# Workbook scanning limits
HEADER_SCAN_ROWS = 50
METADATA_SCAN_ROWS = 30

# Normalized header names
HEADER_TRANSACTION_TYPE = "transactiontype"
HEADER_AMOUNT = "amount"
HEADER_EFFECTIVE_DATE = ("effdate", "effectivedate")

# Transaction types
TXN_INCOME = "INCOME"
TXN_EXPENSE = "EXPENSE"

# Evidence storage
DEFAULT_EVIDENCE_FILE_NAME = "audit-report.xlsx"
EVIDENCE_FOLDER = "cash-up/audit-reports"
XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# Notifications
NOTIFICATION_LINK_DASHBOARD = "/cash-up/dashboard"
MISMATCH_NOTIFICATION_TITLE = "Cashup requires attention"
MISMATCH_NOTIFICATION_MESSAGE = (
    "Your cashup does not balance against the uploaded audit report. Please review and resubmit."
)

# Audit report listing
AUDIT_REPORT_LIST_DEFAULT_LIMIT = 50
AUDIT_REPORT_LIST_MAX_LIMIT = 200

# Metrics
METRIC_NOTIFICATION_FAILURES = "cashup_notification_failures_total"
METRIC_RECONCILIATIONS = "cashup_reconciliations_total"
METRIC_AUDIT_UPLOADS = "cashup_audit_uploads_total"
METRIC_DEFERRED_RECONCILIATION_FAILURES = "cashup_deferred_reconciliation_failures_total"

# Logging
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Author of notes the engine writes itself
SYSTEM_NOTE_AUTHOR = "System"
