"""
AI Analysis Schemas
===================

Stored AI analyses come in three shapes:

- EmailAnalysis (kind="email"): current format with `required_actions`
- LegacyEmailAnalysis (kind="legacy_email"): older emails analyzed before
  required_actions existed (`commitments_made`, `follow_up_expected`,
  `questions_asked`)
- TranscriptAnalysis (kind="transcript"): meeting transcript analysis

The raw JSON has no `kind` field; the parse functions pick the variant at the
boundary and validate it through one discriminated-union adapter.
"""

import json
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from momentum.core.exceptions import ValidationException

LEGACY_COMMUNICATION_TYPE = "email_response"

# follow_up_expected strings that carry no follow-up text
_EMPTY_FOLLOW_UPS = ("none", "null", "true")


class RequiredAction(BaseModel):
    model_config = ConfigDict(extra="allow")

    action: str
    owner: str = "sales_rep"
    urgency: str = "medium"
    reasoning: Optional[str] = None

    @field_validator("owner", "urgency", mode="before")
    @classmethod
    def default_blank(cls, v: Any, info: ValidationInfo) -> Any:
        if v in (None, ""):
            return "sales_rep" if info.field_name == "owner" else "medium"
        return v


class CommandCenterClassification(BaseModel):
    """Tier decision made by the AI against the sales playbook."""

    model_config = ConfigDict(extra="allow")

    tier: Optional[int] = None
    tier_trigger: Optional[str] = None
    why_now: Optional[str] = None
    sla_minutes: Optional[int] = None

    @field_validator("tier", mode="before")
    @classmethod
    def coerce_tier(cls, v: Any) -> Optional[int]:
        # Anything outside 1..5 counts as "not classified"
        try:
            tier = int(v)
        except (TypeError, ValueError):
            return None
        return tier if 1 <= tier <= 5 else None


class EmailAnalysis(BaseModel):
    model_config = ConfigDict(extra="allow")

    kind: Literal["email"] = "email"
    required_actions: List[RequiredAction] = Field(default_factory=list)
    communication_type: Optional[str] = None
    summary: Optional[str] = None
    command_center_classification: Optional[CommandCenterClassification] = None


class LegacyEmailAnalysis(BaseModel):
    model_config = ConfigDict(extra="allow")

    kind: Literal["legacy_email"] = "legacy_email"
    commitments_made: List[Union[str, Dict[str, Any]]] = Field(default_factory=list)
    follow_up_expected: Union[bool, str, Dict[str, Any], None] = None
    questions_asked: List[Union[str, Dict[str, Any]]] = Field(default_factory=list)
    communication_type: Optional[str] = None
    summary: Optional[str] = None
    command_center_classification: Optional[CommandCenterClassification] = None

    @field_validator("commitments_made", "questions_asked", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return v or []


class TranscriptActionItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    task: Optional[str] = None
    commitment: Optional[str] = None
    action: Optional[str] = None
    description: Optional[str] = None
    owner: Optional[str] = None
    assignee: Optional[str] = None
    urgency: Optional[str] = None
    priority: Optional[str] = None
    when: Optional[str] = None

    @property
    def title(self) -> str:
        return self.task or self.commitment or self.action or self.description or "Action item"


class TranscriptAnalysis(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    kind: Literal["transcript"] = "transcript"
    action_items: List[TranscriptActionItem] = Field(
        default_factory=list,
        validation_alias=AliasChoices("actionItems", "action_items"),
    )
    our_commitments: List[TranscriptActionItem] = Field(
        default_factory=list,
        validation_alias=AliasChoices("ourCommitments", "our_commitments"),
    )
    summary: Optional[str] = None

    @field_validator("action_items", "our_commitments", mode="before")
    @classmethod
    def strings_as_tasks(cls, v: Any) -> Any:
        if not v:
            return []
        return [{"task": item} if isinstance(item, str) else item for item in v]

    def all_actions(self) -> List[TranscriptActionItem]:
        """Action items followed by our commitments, as sales-rep actions."""
        commitments = [
            TranscriptActionItem(
                action=c.commitment or c.description,
                owner="sales_rep",
                urgency="medium",
                when=c.when,
            )
            for c in self.our_commitments
        ]
        return list(self.action_items) + commitments


AIAnalysis = Annotated[
    Union[EmailAnalysis, LegacyEmailAnalysis, TranscriptAnalysis],
    Field(discriminator="kind"),
]

analysis_adapter: TypeAdapter = TypeAdapter(AIAnalysis)


def _validate(data: Dict[str, Any], label: str):
    try:
        return analysis_adapter.validate_python(data)
    except ValidationError as e:
        raise ValidationException(f"Malformed {label} analysis", {"errors": str(e)}) from e


def parse_email_analysis(raw: Any) -> Union[EmailAnalysis, LegacyEmailAnalysis]:
    """Pick the email variant from the raw JSON and validate it."""
    if not isinstance(raw, dict):
        raise ValidationException("Email analysis must be a JSON object")
    kind = "email" if raw.get("required_actions") else "legacy_email"
    return _validate({**raw, "kind": kind}, "email")


def parse_transcript_analysis(raw: Any) -> TranscriptAnalysis:
    if not isinstance(raw, dict):
        raise ValidationException("Transcript analysis must be a JSON object")
    return _validate({**raw, "kind": "transcript"}, "transcript")


def _text_of(value: Union[str, Dict[str, Any]], *keys: str) -> str:
    if isinstance(value, str):
        return value
    for key in keys:
        if value.get(key):
            return value[key]
    return json.dumps(value)


def _follow_up_text(follow_up: Union[bool, str, Dict[str, Any], None]) -> Optional[str]:
    if isinstance(follow_up, bool):
        return "Follow up on this conversation" if follow_up else None
    if isinstance(follow_up, str):
        return follow_up if follow_up and follow_up not in _EMPTY_FOLLOW_UPS else None
    if isinstance(follow_up, dict):
        text = follow_up.get("description") or follow_up.get("expected") or follow_up.get("action")
        return text if isinstance(text, str) else None
    return None


def adapt_legacy(legacy: LegacyEmailAnalysis) -> EmailAnalysis:
    """
    Convert a legacy analysis into the current format.

    commitments -> sales_rep actions (high urgency when a deadline was
    mentioned), follow-up -> "Follow up: ...", questions -> "Address
    question: ..." at high urgency. The communication type becomes
    email_response.
    """
    actions: List[RequiredAction] = []

    for commitment in legacy.commitments_made:
        deadline = isinstance(commitment, dict) and bool(commitment.get("deadline_mentioned"))
        actions.append(RequiredAction(
            action=_text_of(commitment, "commitment", "description"),
            owner="sales_rep",
            urgency="high" if deadline else "medium",
        ))

    follow_up = _follow_up_text(legacy.follow_up_expected)
    if follow_up:
        actions.append(RequiredAction(
            action=follow_up if follow_up.startswith("Follow up") else f"Follow up: {follow_up}",
            owner="sales_rep",
            urgency="medium",
        ))

    for question in legacy.questions_asked:
        actions.append(RequiredAction(
            action=f"Address question: {_text_of(question, 'question')}",
            owner="sales_rep",
            urgency="high",
        ))

    return EmailAnalysis(
        required_actions=actions,
        communication_type=LEGACY_COMMUNICATION_TYPE,
        summary=legacy.summary,
        command_center_classification=legacy.command_center_classification,
    )
