"""Reconcile independently generated descriptor tables into one record per cluster.

The fine coverage pass, the peak pass and the network pass each describe the
same clusters, but in their own order and without a shared identifier. Rows are
matched on exact equality of derived descriptors: the
``(volume_mm3, regions_covered, percent_covered)`` triple against the peak
table, and ``volume_mm3`` alone against the network table, whose region counts
are not comparable with the fine atlas. Two clusters with identical keys cannot
be told apart; such ambiguity is reported instead of being resolved silently.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np
import pandas as pd

from blobtable.exceptions import ReconciliationError
from blobtable.models import AlignedCluster

logger = logging.getLogger(__name__)

MATCH_KEY = ("volume_mm3", "regions_covered", "percent_covered")
NETWORK_KEY = ("volume_mm3",)


def _require_columns(table: pd.DataFrame, columns: Sequence[str], source: str) -> None:
    missing = set(columns) - set(table.columns)
    if missing:
        raise ValueError(f"The {source} table is missing required columns: {sorted(missing)}")


def _match(
    table: pd.DataFrame,
    key: dict[str, object],
    *,
    source: str,
    index: int,
    allow_ambiguous: bool,
) -> int:
    """Return the position of the row of *table* whose columns equal *key*.

    Raises
    ------
    ReconciliationError
        If no row matches, or several rows match and *allow_ambiguous* is not set.
    """
    hits = np.ones(len(table), dtype=bool)
    for column, value in key.items():
        hits &= table[column].to_numpy() == value
    positions = np.flatnonzero(hits)

    if positions.size == 0:
        raise ReconciliationError(source, index, key, 0)
    if positions.size > 1:
        if not allow_ambiguous:
            raise ReconciliationError(source, index, key, int(positions.size))
        logger.warning(
            "Cluster at row %d matches %d rows of the %s table on %s; using the first",
            index,
            positions.size,
            source,
            key,
        )
    return int(positions[0])


def reconcile(
    fine: pd.DataFrame,
    regions: Sequence[Sequence[str]],
    peaks: pd.DataFrame,
    networks: pd.DataFrame,
    *,
    allow_ambiguous: bool = False,
) -> list[AlignedCluster]:
    """Align the peak and network descriptors with each fine coverage row.

    Parameters
    ----------
    fine
        Fine-atlas coverage table (see
        :func:`blobtable.descriptors.describe_clusters`). Its row order is the
        output order.
    regions
        Region names overlapped by each row of *fine*, in the same order.
    peaks
        Peak table (see :func:`blobtable.descriptors.describe_peaks`).
    networks
        Network-atlas coverage table.
    allow_ambiguous
        Bind the first of several matching rows, logging a warning, instead
        of raising.

    Returns
    -------
    list[AlignedCluster]
        One aligned record per row of *fine*.

    Raises
    ------
    ReconciliationError
        If a fine row has no match, or an ambiguous one, in *peaks* or *networks*.
    """
    _require_columns(fine, MATCH_KEY, "fine coverage")
    _require_columns(peaks, (*MATCH_KEY, "x", "y", "z", "peak_value"), "peak")
    _require_columns(networks, (*NETWORK_KEY, "modal_label"), "network")
    if len(regions) != len(fine):
        raise ValueError(f"Got region names for {len(regions)} clusters but the fine table has {len(fine)} rows")

    fine = fine.reset_index(drop=True)
    aligned = []
    for i, row in fine.iterrows():
        key = {column: row[column] for column in MATCH_KEY}
        peak = peaks.iloc[_match(peaks, key, source="peak", index=i, allow_ambiguous=allow_ambiguous)]

        network_key = {column: row[column] for column in NETWORK_KEY}
        network = networks.iloc[
            _match(networks, network_key, source="network", index=i, allow_ambiguous=allow_ambiguous)
        ]

        aligned.append(
            AlignedCluster(
                position=int(i),
                volume_mm3=float(row["volume_mm3"]),
                region_names=tuple(regions[i]),
                x=float(peak["x"]),
                y=float(peak["y"]),
                z=float(peak["z"]),
                peak_value=float(peak["peak_value"]),
                network=str(network["modal_label"]),
            )
        )

    logger.debug("Reconciled %d clusters", len(aligned))
    return aligned
