"""SupportCase event type names."""


class SupportCaseEvent(str):
    CREATED = "SupportCaseCreated"
    ASSIGNED = "SupportCaseAssigned"
    STATUS_CHANGED = "SupportCaseStatusChanged"
    SEVERITY_CHANGED = "SupportCaseSeverityChanged"
    CATEGORY_CHANGED = "SupportCaseCategoryChanged"
    CUSTOMER_MESSAGE_LOGGED = "CustomerMessageLogged"
    AGENT_RESPONSE_SENT = "AgentResponseSent"
    INTERNAL_NOTE_ADDED = "InternalNoteAdded"
    NEXT_ACTION_SET = "NextActionSet"
    SLA_CONFIGURED = "SlaConfigured"
    SLA_BREACHED = "SlaBreached"
    RESOLVED = "SupportCaseResolved"
    CLOSED = "SupportCaseClosed"
    REOPENED = "SupportCaseReopened"
    ESCALATED = "SupportCaseEscalated"
    CSAT_SUBMITTED = "CsatSubmitted"
    TAG_ADDED = "TagAdded"
    TAG_REMOVED = "TagRemoved"


# Close reasons that say nothing about customer sentiment
NEUTRAL_CLOSE_REASONS = ("no_response", "cancelled")
