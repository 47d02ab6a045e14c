"""Flatten multi-valued cluster labels into display strings.

Region and heuristic names are deduplicated in order of first occurrence and
never sorted: upstream lists are ordered by coverage, and that order is kept in
the published table.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, TypeVar

from blobtable.exceptions import AtlasError

if TYPE_CHECKING:
    from blobtable.atlas import Atlas

logger = logging.getLogger(__name__)

T = TypeVar("T")

#: Substring marking cortical regions in fine atlas labels.
CORTICAL_MARKER = "Ctx"

#: Network assigned to every region without the cortical marker.
SUBCORTICAL_NETWORK = "Sub-cortex"

SEPARATOR = ", "

_CORTICAL_PREFIX = re.compile(rf"^{CORTICAL_MARKER}_")


def stable_unique(items: Iterable[T]) -> list[T]:
    """Return *items* without duplicates, in order of first occurrence.

    Examples
    --------
    >>> stable_unique(["b", "a", "b", "c", "a"])
    ['b', 'a', 'c']
    """
    return list(dict.fromkeys(items))


def format_region_name(name: str) -> str:
    """Strip formatting noise from an atlas label.

    Examples
    --------
    >>> format_region_name("Ctx_V1_L")
    'V1 L'
    >>> format_region_name("Thal_Pulv")
    'Thal Pulv'
    """
    name = _CORTICAL_PREFIX.sub("", str(name))
    return " ".join(name.replace("_", " ").split())


def join_names(names: Iterable[str]) -> str:
    """Format, deduplicate and comma-join label names."""
    formatted = (format_region_name(name) for name in names)
    return SEPARATOR.join(stable_unique(name for name in formatted if name))


def join_region_names(names: Sequence[str]) -> str:
    """Display string for the regions a cluster overlaps."""
    return join_names(names)


def heuristic_names(names: Sequence[str], atlas: Atlas) -> str:
    """Display string of heuristic groups for the regions a cluster overlaps.

    Only the canonical atlas carries a heuristic grouping; every other atlas
    yields an empty string. Regions without a group are skipped.
    """
    if not atlas.is_canonical or not atlas.has_heuristics:
        return ""
    lookup = atlas.heuristic_lookup
    return join_names(lookup[name] for name in names if name in lookup)


def network_labels(atlas: Atlas) -> dict[str, str]:
    """Map every fine region of *atlas* to its network.

    Cortical regions (those carrying :data:`CORTICAL_MARKER`) take their network
    from the atlas's network lookup; all other regions are assigned
    :data:`SUBCORTICAL_NETWORK`.

    Raises
    ------
    AtlasError
        If a cortical region has no network.
    """
    lookup = atlas.network_lookup
    networks: dict[str, str] = {}
    for label in atlas.labels:
        if CORTICAL_MARKER not in label:
            networks[label] = SUBCORTICAL_NETWORK
            continue
        try:
            networks[label] = lookup[label]
        except KeyError:
            raise AtlasError(f"Cortical region {label!r} of atlas {atlas.name} has no network label") from None
    logger.debug("Resolved networks for %d regions of atlas %s", len(networks), atlas.name)
    return networks
