"""
Constants for request numbering, audit actions and entity types
"""

# Request number prefixes (LR-2025-0001, WFH-2025-0001)
LEAVE_REQUEST_PREFIX = "LR"
WFH_REQUEST_PREFIX = "WFH"

# Audit entity types
ENTITY_LEAVE_REQUEST = "leave_request"
ENTITY_WFH_REQUEST = "wfh_request"
ENTITY_APPROVAL = "approval"
ENTITY_LEAVE_BALANCE = "leave_balance"
ENTITY_HOLIDAY = "holiday"
ENTITY_RECONCILIATION = "reconciliation"

# Audit actions
ACTION_CREATE = "CREATE"
ACTION_APPROVE = "APPROVE"
ACTION_REJECT = "REJECT"
ACTION_CANCEL = "CANCEL"
ACTION_ESCALATE = "ESCALATE"
ACTION_AUTO_APPROVE = "AUTO_APPROVE"
ACTION_AUTO_CANCEL = "AUTO_CANCEL"
ACTION_SELF_APPROVAL_ATTEMPT = "SELF_APPROVAL_ATTEMPT"
ACTION_BALANCE_ADJUST = "BALANCE_ADJUST"
ACTION_BALANCE_RECOMPUTE = "BALANCE_RECOMPUTE"
ACTION_YEAR_END = "YEAR_END"
ACTION_APPROVER_REPAIR = "APPROVER_REPAIR"
ACTION_ARCHIVE = "ARCHIVE"
ACTION_UPDATE = "UPDATE"
ACTION_RECONCILE = "RECONCILE"

# Fields captured in before/after audit snapshots
REQUEST_SNAPSHOT_FIELDS = ("status", "start_date", "end_date", "selected_dates", "total_days")
APPROVAL_SNAPSHOT_FIELDS = ("status", "level", "approver_id", "escalated_to_id", "escalated_at", "decided_at")
BALANCE_SNAPSHOT_FIELDS = ("entitled", "carried_forward", "used", "pending", "available")
