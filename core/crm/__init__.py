"""
Salesforce integration: OAuth session and REST calls.
"""

from core.crm.client import (
    CrmError,
    CrmAuthenticationError,
    SaveResult,
    SalesforceConnection,
    DUPLICATE_RULE_HEADER,
    get_crm_connection,
    set_crm_connection,
)

__all__ = [
    "CrmError",
    "CrmAuthenticationError",
    "SaveResult",
    "SalesforceConnection",
    "DUPLICATE_RULE_HEADER",
    "get_crm_connection",
    "set_crm_connection",
]
