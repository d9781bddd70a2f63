"""
Item Builder
============

Turns an analyzed email or meeting transcript into a CommandCenterItem.

Emails with more than one required action become a workflow card with one
step per action; a single action becomes a simple task. Transcripts always
become a workflow card of at most five follow-up steps.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from momentum.config import ActionType, ItemSource
from momentum.command_center.domain import (
    CommandCenterItem,
    CompanyRef,
    ContactRecord,
    EmailAnalysis,
    EmailRecord,
    LegacyEmailAnalysis,
    RequiredAction,
    TierAssignment,
    TranscriptActionItem,
    TranscriptRecord,
    WorkflowStep,
    adapt_legacy,
    email_source_key,
    extract_company_from_title,
    parse_email_analysis,
    parse_transcript_analysis,
    source_hash,
    tier_for_transcript,
    tier_from_ai_analysis,
)
from momentum.command_center.domain.analysis import LEGACY_COMMUNICATION_TYPE
from momentum.command_center.domain.dedup import transcript_source_key
from momentum.shared.timeutils import utc_now

WORKFLOW_TITLES = {
    "free_trial_form": "Process Trial Form Submission",
    "demo_request": "Handle Demo Request",
    "pricing_request": "Respond to Pricing Inquiry",
    "proposal_follow_up": "Follow Up on Proposal",
    "meeting_follow_up": "Complete Meeting Follow-ups",
    "contract_negotiation": "Advance Contract Discussion",
    "question_inquiry": "Address Customer Questions",
}

MAX_TRANSCRIPT_STEPS = 5
MINUTES_PER_STEP = 10
TRANSCRIPT_MOMENTUM = 70


@dataclass
class EmailActions:
    """Normalized view of an email analysis: current-format actions plus the hash key."""
    analysis: EmailAnalysis
    communication_type: str
    hash_key: str

    @property
    def actions(self) -> List[RequiredAction]:
        return self.analysis.required_actions


@dataclass
class BuiltItem:
    item: CommandCenterItem
    assignment: TierAssignment
    company: Optional[CompanyRef] = None


def workflow_title(communication_type: Optional[str]) -> str:
    if communication_type in WORKFLOW_TITLES:
        return WORKFLOW_TITLES[communication_type]
    return f"Process {(communication_type or 'response').replace('_', ' ')}"


def momentum_for_tier(tier: int) -> int:
    return 100 - tier * 15


class ItemBuilder:
    """Builds unsaved items; persistence and dedup are the caller's job."""

    def __init__(self, clock=utc_now):
        self._clock = clock

    # ========== Emails ==========

    @staticmethod
    def email_hash(parsed: EmailActions) -> str:
        return source_hash(parsed.hash_key)

    @staticmethod
    def email_actions(email: EmailRecord) -> EmailActions:
        """
        Parse the stored analysis and bring legacy payloads to the current format.

        The hash key uses the communication type as stored, before the legacy
        adapter rewrites it, so hashes stay stable across adapter changes.
        """
        raw = email.ai_analysis or {}
        parsed: Union[EmailAnalysis, LegacyEmailAnalysis] = parse_email_analysis(raw)
        if isinstance(parsed, LegacyEmailAnalysis):
            analysis = adapt_legacy(parsed)
            comm_type = LEGACY_COMMUNICATION_TYPE
        else:
            analysis = parsed
            comm_type = parsed.communication_type or LEGACY_COMMUNICATION_TYPE
        return EmailActions(
            analysis=analysis,
            communication_type=comm_type,
            hash_key=email_source_key(email.id, raw.get("communication_type")),
        )

    def build_email_item(
        self,
        user_id: str,
        email: EmailRecord,
        parsed: EmailActions,
        contact: Optional[ContactRecord] = None
    ) -> BuiltItem:
        actions = parsed.actions
        assignment = tier_from_ai_analysis(parsed.analysis, parsed.communication_type)
        now = self._clock()

        item = CommandCenterItem(
            user_id=user_id,
            title="",
            tier=assignment.tier,
            tier_trigger=assignment.tier_trigger,
            why_now=assignment.why_now,
            source=ItemSource.AI_RECOMMENDATION,
            source_hash=self.email_hash(parsed),
            contact_id=contact.id if contact else None,
            company_id=contact.company_id if contact else None,
            conversation_id=email.conversation_ref,
            email_id=email.id,
            momentum_score=momentum_for_tier(assignment.tier),
            received_at=email.received_at,
            created_at=now,
            updated_at=now,
        )

        if len(actions) > 1:
            item.action_type = ActionType.WORKFLOW
            item.title = workflow_title(parsed.communication_type)
            item.description = parsed.analysis.summary
            item.workflow_steps = [
                WorkflowStep(
                    id=f"step-{i}",
                    title=action.action,
                    owner=action.owner,
                    urgency=action.urgency,
                )
                for i, action in enumerate(actions, start=1)
            ]
            item.estimated_minutes = len(item.workflow_steps) * MINUTES_PER_STEP
        else:
            action = actions[0]
            item.action_type = ActionType.TASK_SIMPLE
            item.title = action.action
            item.description = action.reasoning or parsed.analysis.summary
            item.estimated_minutes = 15

        return BuiltItem(item=item, assignment=assignment)

    # ========== Transcripts ==========

    @staticmethod
    def transcript_hash(transcript: TranscriptRecord) -> str:
        return source_hash(transcript_source_key(transcript.id))

    def build_transcript_item(
        self,
        user_id: str,
        transcript: TranscriptRecord,
        companies: Sequence[CompanyRef] = ()
    ) -> Optional[BuiltItem]:
        """None when the analysis has no action items or commitments."""
        analysis = parse_transcript_analysis(transcript.analysis or {})
        actions = analysis.all_actions()
        if not actions:
            return None

        steps = [
            _transcript_step(i, action)
            for i, action in enumerate(actions[:MAX_TRANSCRIPT_STEPS], start=1)
        ]
        assignment = tier_for_transcript(analysis, actions)
        company = extract_company_from_title(transcript.title, companies)
        now = self._clock()

        item = CommandCenterItem(
            user_id=user_id,
            meeting_id=transcript.id,
            company_id=company.id if company else None,
            title=f"Meeting Follow-ups: {(transcript.title or '')[:40] or 'Call'}",
            description=analysis.summary or f"Follow up on {len(steps)} action items from this call.",
            tier=assignment.tier,
            tier_trigger=assignment.tier_trigger,
            why_now=assignment.why_now or f"{len(steps)} commitments from your call need follow-up.",
            action_type=ActionType.WORKFLOW,
            source=ItemSource.TRANSCRIPTION,
            source_hash=self.transcript_hash(transcript),
            workflow_steps=steps,
            momentum_score=TRANSCRIPT_MOMENTUM,
            estimated_minutes=len(steps) * MINUTES_PER_STEP,
            received_at=transcript.meeting_date,
            created_at=now,
            updated_at=now,
        )
        return BuiltItem(item=item, assignment=assignment, company=company)


def _transcript_step(index: int, action: TranscriptActionItem) -> WorkflowStep:
    return WorkflowStep(
        id=f"step-{index}",
        title=action.title,
        owner=action.owner or "sales_rep",
        urgency=action.urgency or action.priority or "medium",
    )

