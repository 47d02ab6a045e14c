"""Per-cluster atlas coverage and peak descriptors.

Each function here is one independent labeling pass over a set of clusters. The
passes share no cluster identifier: rows are only comparable through the
derived ``volume_mm3``, ``regions_covered`` and ``percent_covered`` columns.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np
import pandas as pd

from blobtable.atlas import Atlas
from blobtable.clusters import Cluster

logger = logging.getLogger(__name__)

COVERAGE_COLUMNS = ["volume_mm3", "voxels", "regions_covered", "modal_label", "percent_covered"]
PEAK_COLUMNS = ["volume_mm3", "regions_covered", "percent_covered", "modal_label", "x", "y", "z", "peak_value"]

_LEGEND = """\
volume_mm3: cluster volume in mm^3
regions_covered: number of distinct atlas regions overlapped by the cluster
percent_covered: percentage of cluster voxels in the modal (most frequent) region
modal_label: atlas region covering the most cluster voxels
x, y, z: world coordinates (mm) of the peak voxel
peak_value: statistic value with the largest magnitude in the cluster"""


def _coverage(cluster: Cluster, atlas: Atlas) -> tuple[int, str, float, list[str]]:
    """Return region count, modal label, modal coverage percent and region names.

    Region names are ordered by the number of cluster voxels they cover,
    largest first, ties broken by atlas index.
    """
    indices = atlas.data[tuple(cluster.voxels.T)]
    indices = indices[indices != 0]
    if indices.size == 0:
        return 0, "", 0.0, []

    unique, counts = np.unique(indices, return_counts=True)
    order = np.argsort(-counts, kind="stable")
    names = atlas.label_names
    region_names = [names[int(unique[i])] for i in order]
    percent = 100.0 * float(counts[order[0]]) / cluster.n_voxels
    return int(unique.size), region_names[0], percent, region_names


def describe_clusters(clusters: Sequence[Cluster], atlas: Atlas) -> tuple[pd.DataFrame, list[list[str]]]:
    """Describe atlas coverage of each cluster.

    Parameters
    ----------
    clusters
        Clusters of one polarity.
    atlas
        Atlas on the clusters' voxel grid.

    Returns
    -------
    tuple[pd.DataFrame, list[list[str]]]
        One row per cluster, in cluster order, with columns
        :data:`COVERAGE_COLUMNS`; and, in the same order, the names of the
        regions each cluster overlaps.
    """
    rows = []
    region_names = []
    for cluster in clusters:
        n_regions, modal_label, percent, names = _coverage(cluster, atlas)
        rows.append(
            {
                "volume_mm3": cluster.volume_mm3,
                "voxels": cluster.n_voxels,
                "regions_covered": n_regions,
                "modal_label": modal_label,
                "percent_covered": percent,
            }
        )
        region_names.append(names)

    logger.debug("Described %d clusters with atlas %s", len(rows), atlas.name)
    return pd.DataFrame(rows, columns=COVERAGE_COLUMNS), region_names


def describe_peaks(
    clusters: Sequence[Cluster],
    atlas: Atlas,
    *,
    verbose: bool = True,
    show_legend: bool = True,
) -> pd.DataFrame:
    """Describe the peak of each cluster, ordered by peak magnitude.

    Rows are sorted by decreasing absolute peak value, so their order differs
    from :func:`describe_clusters`. When *verbose* is set the table is printed,
    followed by a column legend when *show_legend* is set.
    """
    rows = []
    for cluster in clusters:
        n_regions, modal_label, percent, _ = _coverage(cluster, atlas)
        x, y, z = cluster.peak_xyz
        rows.append(
            {
                "volume_mm3": cluster.volume_mm3,
                "regions_covered": n_regions,
                "percent_covered": percent,
                "modal_label": modal_label,
                "x": x,
                "y": y,
                "z": z,
                "peak_value": cluster.peak_value,
            }
        )

    table = pd.DataFrame(rows, columns=PEAK_COLUMNS)
    if not table.empty:
        order = np.argsort(-table["peak_value"].abs().to_numpy(), kind="stable")
        table = table.iloc[order].reset_index(drop=True)

    if verbose:
        print(table.to_string(index=False) if not table.empty else "No clusters.")
        if show_legend:
            print()
            print(_LEGEND)
    return table
