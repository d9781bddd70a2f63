"""
Source records the command center is generated from.

Read-only views over CRM rows (users, contacts, analyzed emails and
meeting transcripts). They are produced by ISourceRepository and consumed
by the item builder.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass
class UserRecord:
    id: str
    email: Optional[str] = None
    auth_id: Optional[str] = None


@dataclass
class ContactRecord:
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    company_id: Optional[str] = None


@dataclass
class EmailRecord:
    id: str
    subject: Optional[str] = None
    from_email: Optional[str] = None
    from_name: Optional[str] = None
    ai_analysis: Optional[Dict[str, Any]] = None
    received_at: Optional[datetime] = None
    conversation_ref: Optional[str] = None


@dataclass
class TranscriptRecord:
    id: str
    title: Optional[str] = None
    analysis: Optional[Dict[str, Any]] = None
    meeting_date: Optional[datetime] = None


@dataclass
class SourceCounts:
    emails_total: int = 0
    emails_inbound: int = 0
    emails_analyzed: int = 0
    transcripts_total: int = 0
    transcripts_analyzed: int = 0
    contacts: int = 0
    companies: int = 0
    deals: int = 0
