"""
Ad network <-> CRM source mapping.

The ads store names networks ('Google Ads', 'Facebook'); the CRM stores the
traffic source it saw ('adwords', 'fb', ...). Both sides are reduced to the
lower-cased network name before they meet in a tracking key.
"""

from typing import Dict, List, Optional

from attribution_engine.config import get_settings


def _mapping(source_mapping: Optional[Dict[str, List[str]]]) -> Dict[str, List[str]]:
    if source_mapping is None:
        return get_settings().attribution.source_mapping
    return source_mapping


def normalize_network(network: Optional[str]) -> str:
    """Lower-cased, trimmed network name ('' for missing values)"""
    if network is None or network == "null":
        return ""
    return network.strip().lower()


def map_crm_source_to_network(
    source: Optional[str],
    source_mapping: Optional[Dict[str, List[str]]] = None,
) -> str:
    """
    Map a CRM source to the network it belongs to.

    Unmapped sources pass through lower-cased so that a network and a source
    with the same name still meet.
    """
    normalized = normalize_network(source)
    if not normalized:
        return ""
    for network, sources in _mapping(source_mapping).items():
        if normalized in (s.lower() for s in sources):
            return network.lower()
    return normalized
