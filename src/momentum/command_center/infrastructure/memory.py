"""In-memory command center repositories for tests and offline tooling."""

import copy
from typing import Dict, List, Optional, Sequence

from momentum.config import ACTIVE_ITEM_STATUSES
from momentum.core.exceptions import ResourceNotFoundException
from momentum.command_center.application.services import (
    IAttentionFlagRepository,
    ICommandCenterRepository,
    ISourceRepository,
)
from momentum.command_center.domain import (
    AttentionFlag,
    CommandCenterItem,
    CompanyRef,
    ContactRecord,
    EmailRecord,
    SourceCounts,
    TranscriptRecord,
    UserRecord,
)


class InMemoryCommandCenterRepository(ICommandCenterRepository):

    def __init__(self) -> None:
        self._items: Dict[str, CommandCenterItem] = {}

    async def get(self, item_id: str) -> Optional[CommandCenterItem]:
        item = self._items.get(item_id)
        return copy.deepcopy(item) if item else None

    async def add(self, item: CommandCenterItem) -> bool:
        if item.source_hash and await self.exists_by_source_hash(item.source_hash):
            return False
        self._items[item.id] = copy.deepcopy(item)
        return True

    async def save(self, item: CommandCenterItem) -> None:
        if item.id not in self._items:
            raise ResourceNotFoundException("Command center item", item.id)
        self._items[item.id] = copy.deepcopy(item)

    async def exists_by_source_hash(self, source_hash: str) -> bool:
        return any(i.source_hash == source_hash for i in self._items.values())

    async def list_for_user(
        self,
        user_id: str,
        statuses: Optional[Sequence[str]] = None
    ) -> List[CommandCenterItem]:
        items = [
            i for i in self._items.values()
            if i.user_id == user_id and (not statuses or i.status in statuses)
        ]
        return [copy.deepcopy(i) for i in sorted(items, key=lambda i: i.created_at)]

    async def list_by_trigger(
        self,
        tier_trigger: str,
        statuses: Sequence[str],
        limit: int
    ) -> List[CommandCenterItem]:
        items = [
            i for i in self._items.values()
            if i.tier_trigger == tier_trigger and i.status in statuses
        ]
        return [copy.deepcopy(i) for i in sorted(items, key=lambda i: i.created_at)[:limit]]

    async def count_active(self) -> int:
        return sum(1 for i in self._items.values() if i.status in ACTIVE_ITEM_STATUSES)

    async def count_with_source_hash(self) -> int:
        return sum(1 for i in self._items.values() if i.source_hash)

    def all(self) -> List[CommandCenterItem]:
        return [copy.deepcopy(i) for i in self._items.values()]


class InMemorySourceRepository(ISourceRepository):
    """Fixed CRM data handed in by the caller."""

    def __init__(
        self,
        users: Sequence[UserRecord] = (),
        emails: Sequence[EmailRecord] = (),
        transcripts: Sequence[TranscriptRecord] = (),
        contacts: Sequence[ContactRecord] = (),
        companies: Sequence[CompanyRef] = (),
        deals: int = 0
    ):
        self.users = list(users)
        self.emails = list(emails)
        self.transcripts = list(transcripts)
        self.contacts = list(contacts)
        self.companies = list(companies)
        self.deals = deals

    async def find_user_with_auth_id(self) -> Optional[UserRecord]:
        return next((u for u in self.users if u.auth_id), None)

    async def list_analyzed_emails(self, limit: int) -> List[EmailRecord]:
        analyzed = [e for e in self.emails if e.ai_analysis]
        analyzed.sort(key=lambda e: e.received_at.timestamp() if e.received_at else 0, reverse=True)
        return analyzed[:limit]

    async def list_analyzed_transcripts(self, limit: int) -> List[TranscriptRecord]:
        analyzed = [t for t in self.transcripts if t.analysis]
        analyzed.sort(key=lambda t: t.meeting_date.timestamp() if t.meeting_date else 0, reverse=True)
        return analyzed[:limit]

    async def find_contact_by_email(self, email: str) -> Optional[ContactRecord]:
        return next((c for c in self.contacts if c.email == email), None)

    async def list_companies(self) -> List[CompanyRef]:
        return list(self.companies)

    async def count_sources(self) -> SourceCounts:
        analyzed_emails = sum(1 for e in self.emails if e.ai_analysis)
        return SourceCounts(
            emails_total=len(self.emails),
            emails_inbound=len(self.emails),
            emails_analyzed=analyzed_emails,
            transcripts_total=len(self.transcripts),
            transcripts_analyzed=sum(1 for t in self.transcripts if t.analysis),
            contacts=len(self.contacts),
            companies=len(self.companies),
            deals=self.deals,
        )


class InMemoryAttentionFlagRepository(IAttentionFlagRepository):

    def __init__(self) -> None:
        self._flags: Dict[str, AttentionFlag] = {}

    async def get(self, flag_id: str) -> Optional[AttentionFlag]:
        flag = self._flags.get(flag_id)
        return copy.deepcopy(flag) if flag else None

    async def add(self, flag: AttentionFlag) -> None:
        self._flags[flag.id] = copy.deepcopy(flag)

    async def save(self, flag: AttentionFlag) -> None:
        if flag.id not in self._flags:
            raise ResourceNotFoundException("Attention flag", flag.id)
        self._flags[flag.id] = copy.deepcopy(flag)

    async def list(
        self,
        company_id: Optional[str] = None,
        statuses: Optional[Sequence[str]] = None
    ) -> List[AttentionFlag]:
        flags = [
            f for f in self._flags.values()
            if (not company_id or f.company_id == company_id) and (not statuses or f.status in statuses)
        ]
        return [copy.deepcopy(f) for f in sorted(flags, key=lambda f: f.created_at)]
