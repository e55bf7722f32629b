# ============================================================================
# src/clinical_extraction/parsers/route_lookup.py
# ============================================================================
"""
Canonical drug route lookup.

The model infers a route from whatever text sits near the drug name, so
the curated drug table always wins. The model's route string is only
consulted when the drug is not in the table.
"""

import logging

from ..constants.drug_routes import DRUG_ROUTE_TABLE, ROUTE_KEYWORDS

logger = logging.getLogger(__name__)

DEFAULT_ROUTE = "PO"


def canonical_route(drug_name: str, llm_route: str = "") -> str:
    """
    Resolve the administration route for a drug.

    Args:
        drug_name: Drug name as extracted (e.g. "Metformin 500mg")
        llm_route: Route string suggested by the model

    Returns:
        One of PO, IV, IM, SC, INH
    """
    name = (drug_name or "").lower()
    for fragment, route in DRUG_ROUTE_TABLE:
        if fragment in name:
            return route

    suggested = (llm_route or "").upper()
    if suggested:
        for route, keywords in ROUTE_KEYWORDS:
            if any(kw in suggested for kw in keywords):
                return route

    logger.debug(f"No route for '{drug_name}' (suggested '{llm_route}'), defaulting to {DEFAULT_ROUTE}")
    return DEFAULT_ROUTE
