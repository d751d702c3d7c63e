"""Lead enrichment for routing."""

import logging
import math
from dataclasses import replace
from typing import Optional

from .models import Lead

logger = logging.getLogger(__name__)

HOT_STATUS_BONUS = 30
WARM_STATUS_BONUS = 15


def calculate_priority_score(lead: Lead) -> float:
    """Priority used by the priority strategy.

    Lead score, plus log10 of the deal size when one is known, plus a bonus
    for "Hot" and "Warm" statuses.
    """
    score = float(lead.score or 0)

    if lead.deal_size and lead.deal_size > 0:
        score += math.log10(lead.deal_size)

    if lead.status == "Hot":
        score += HOT_STATUS_BONUS
    elif lead.status == "Warm":
        score += WARM_STATUS_BONUS

    return score


class LeadEnricher:
    """Adds region, priority, industry and deal size to a lead.

    The lookup hooks return None by default; subclass and override them to
    plug in geo-IP, firmographic or deal-size sources. Values the caller
    already supplied are never overwritten.
    """

    def enrich(self, lead: Lead) -> Lead:
        enriched = replace(
            lead,
            custom_fields=dict(lead.custom_fields),
            region=lead.region or self.determine_region(lead),
            industry=lead.industry or self.extract_industry(lead),
            deal_size=lead.deal_size if lead.deal_size is not None else self.estimate_deal_size(lead),
        )
        enriched.priority = calculate_priority_score(enriched)
        return enriched

    def determine_region(self, lead: Lead) -> Optional[str]:
        return None

    def extract_industry(self, lead: Lead) -> Optional[str]:
        return None

    def estimate_deal_size(self, lead: Lead) -> Optional[float]:
        return None
