"""
Company linking for meeting transcripts.

Transcripts rarely carry a company id, so the meeting title is matched
against known company names. Longer names are tried first so that
"Acme Pest Control" wins over "Acme".
"""

from typing import NamedTuple, Optional, Sequence

# Names too generic to match on their first word
GENERIC_COMPANY_NAMES = ("external contacts", "pest control", "services", "pest")


class CompanyRef(NamedTuple):
    id: str
    name: str


def extract_company_from_title(
    title: Optional[str],
    companies: Sequence[CompanyRef]
) -> Optional[CompanyRef]:
    if not title:
        return None

    lowered = title.lower()
    ordered = sorted((c for c in companies if c.name), key=lambda c: len(c.name), reverse=True)

    for company in ordered:
        if company.name.lower() in lowered:
            return company

    for company in ordered:
        name = company.name.lower()
        if name in GENERIC_COMPANY_NAMES:
            continue
        significant = next((w for w in name.split() if len(w) > 2), None)
        if significant and significant in lowered:
            return company

    return None
