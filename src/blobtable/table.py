"""Build publication tables of activation clusters.

:func:`table_for_publication` runs the whole pipeline for one statistic image:
split clusters by polarity, describe each polarity with the fine atlas, the
peak pass and the network atlas, reconcile the three descriptor tables and
assemble one numbered table per polarity.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import astuple
from pathlib import Path
from typing import NamedTuple

import nibabel as nib
import numpy as np
import pandas as pd

from blobtable.atlas import Atlas, resolve_atlas
from blobtable.clusters import Cluster, split_clusters
from blobtable.descriptors import describe_clusters, describe_peaks
from blobtable.exceptions import InvalidInputError
from blobtable.labels import heuristic_names, join_region_names
from blobtable.models import AlignedCluster, AnnotatedRow, AtlasDefinition
from blobtable.reconcile import reconcile
from blobtable.utils import _load_nifti

logger = logging.getLogger(__name__)


class PublicationTables(NamedTuple):
    """Positive table and, when requested, negative table."""

    positive: pd.DataFrame
    negative: pd.DataFrame | None = None


def stat_column_name(stat_type: str) -> str:
    """Name of the peak statistic column for a statistic image type.

    Examples
    --------
    >>> stat_column_name("T")
    'Max t'
    >>> stat_column_name("F")
    'Max f'
    """
    return f"Max {str(stat_type).lower()}"


def table_columns(stat_type: str = "T") -> list[str]:
    return [
        "Cluster",
        "Volume (mm^3)",
        "Atlas region names",
        "Heuristic names",
        "X",
        "Y",
        "Z",
        stat_column_name(stat_type),
        "Network",
    ]


def assemble_table(aligned: Sequence[AlignedCluster], atlas: Atlas, stat_type: str = "T") -> pd.DataFrame:
    """Number aligned clusters 1..N and build the publication table.

    Parameters
    ----------
    aligned
        Reconciled clusters of one polarity, in table order.
    atlas
        Fine atlas the region names come from; decides whether heuristic
        names are available.
    stat_type
        Declared type of the statistic image.

    Returns
    -------
    pd.DataFrame
        Columns from :func:`table_columns`; an empty table when *aligned* is empty.
    """
    rows = [
        AnnotatedRow(
            cluster=number,
            volume_mm3=cluster.volume_mm3,
            region_names=join_region_names(cluster.region_names),
            heuristic_names=heuristic_names(cluster.region_names, atlas),
            x=cluster.x,
            y=cluster.y,
            z=cluster.z,
            peak_value=cluster.peak_value,
            network=cluster.network,
        )
        for number, cluster in enumerate(aligned, start=1)
    ]
    table = pd.DataFrame([astuple(row) for row in rows], columns=table_columns(stat_type))
    return table.astype({"Cluster": int, "Volume (mm^3)": float, "X": float, "Y": float, "Z": float})


def _prepare_stat_img(stat_img: nib.Nifti1Image | str | Path) -> nib.Nifti1Image:
    """Load the statistic image, rejecting anything but a single 3-D frame."""
    img = _load_nifti(stat_img)
    if len(img.shape) == 4:
        if img.shape[3] != 1:
            raise InvalidInputError(
                f"Expected a single statistic image, got {img.shape[3]} frames. Select one frame before tabulating."
            )
        img = nib.Nifti1Image(np.asarray(img.dataobj)[..., 0], img.affine, img.header)
    elif len(img.shape) != 3:
        raise InvalidInputError(f"Expected a 3D statistic image, got shape {img.shape}")
    return img


def _polarity_table(
    clusters: Sequence[Cluster],
    atlas: Atlas,
    network_atlas: Atlas,
    *,
    stat_type: str,
    verbose: bool,
    show_legend: bool,
    allow_ambiguous: bool,
) -> pd.DataFrame:
    fine, regions = describe_clusters(clusters, atlas)
    covered = (fine["regions_covered"] > 0).to_numpy()
    if not covered.all():
        logger.info("Dropping %d clusters without atlas coverage", int((~covered).sum()))
    fine = fine.loc[covered].reset_index(drop=True)
    regions = [names for names, keep in zip(regions, covered) if keep]

    # A cluster without fine coverage has none in the network atlas either.
    networks, _ = describe_clusters(clusters, network_atlas)
    networks = networks.loc[networks["regions_covered"] > 0].reset_index(drop=True)
    peaks = describe_peaks(clusters, atlas, verbose=verbose, show_legend=show_legend)
    peaks = peaks.loc[peaks["regions_covered"] > 0].reset_index(drop=True)

    aligned = reconcile(fine, regions, peaks, networks, allow_ambiguous=allow_ambiguous)
    return assemble_table(aligned, atlas, stat_type)


def table_for_publication(
    stat_img: nib.Nifti1Image | str | Path,
    atlas: Atlas | str | None = None,
    *,
    include_negative: bool = False,
    threshold: float = 0.0,
    verbose: bool = True,
    show_legend: bool = True,
    stat_type: str = "T",
    allow_ambiguous: bool = False,
    atlas_registry: Mapping[str, AtlasDefinition] | None = None,
) -> PublicationTables:
    """Build publication tables of the clusters of a statistic image.

    Parameters
    ----------
    stat_img
        Thresholded statistic image (single frame). Non-zero voxels form the
        clusters.
    atlas
        Labeling atlas, or the key of an atlas in *atlas_registry*. ``None``
        selects the default atlas from the registry.
    include_negative
        Also tabulate negative clusters.
    threshold
        Atlas probability threshold applied before labeling.
    verbose
        Print the intermediate peak table.
    show_legend
        Print a column legend below the peak table.
    stat_type
        Declared statistic type of the image, used to name the peak column.
    allow_ambiguous
        Accept the first of several clusters with identical descriptor keys
        instead of failing.
    atlas_registry
        Atlas definitions keyed by selector, used when *atlas* is not an
        :class:`~blobtable.atlas.Atlas`.

    Returns
    -------
    PublicationTables
        The positive table, and the negative table or ``None``.

    Raises
    ------
    InvalidInputError
        If *stat_img* holds more than one image.
    ReconciliationError
        If a cluster cannot be matched unambiguously across descriptor tables.
    """
    img = _prepare_stat_img(stat_img)
    if not isinstance(atlas, Atlas):
        atlas = resolve_atlas(atlas, atlas_registry)

    logger.info("Building cluster tables with atlas %s at threshold %s", atlas.name, threshold)
    fine_atlas = atlas.threshold(threshold).resample_to(img)
    network_atlas = fine_atlas.network_atlas()

    positive, negative = split_clusters(img)
    polarities = [positive, negative] if include_negative else [positive]
    tables = [
        _polarity_table(
            clusters,
            fine_atlas,
            network_atlas,
            stat_type=stat_type,
            verbose=verbose,
            show_legend=show_legend,
            allow_ambiguous=allow_ambiguous,
        )
        for clusters in polarities
    ]
    return PublicationTables(*tables)
