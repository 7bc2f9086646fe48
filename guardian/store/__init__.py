"""
Campus Guardian Document Store
Collections of JSON documents with access rules, cursor pages and live queries.
"""
from .documents import DocumentStore, Page, Query, Subscription, Transaction, SERVER_TIMESTAMP
from .rules import Actor, ANONYMOUS, REPORTING_ROLES, SYSTEM_ACTOR, WELLNESS_STAFF_ID, WELLNESS_STAFF_NAME

__all__ = [
    "DocumentStore",
    "Page",
    "Query",
    "Subscription",
    "Transaction",
    "SERVER_TIMESTAMP",
    "Actor",
    "ANONYMOUS",
    "REPORTING_ROLES",
    "SYSTEM_ACTOR",
    "WELLNESS_STAFF_ID",
    "WELLNESS_STAFF_NAME",
]
