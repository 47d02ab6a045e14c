"""Shared utility functions.

Image loading, configuration value parsing, atlas registry parsing and
provenance sidecars.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

import nibabel as nib

from blobtable.models import AtlasDefinition

logger = logging.getLogger(__name__)


def _load_nifti(img: nib.Nifti1Image | str | Path) -> nib.Nifti1Image:
    """Return *img* as a NIfTI image, loading it from disk when given a path."""
    if isinstance(img, (str, Path)):
        return nib.load(str(Path(img).expanduser()))
    return img


def _parse_log_level(value: str | int | None) -> int:
    """Return a logging level from common string/int inputs.

    Parameters
    ----------
    value
        The value to parse.

    Returns
    -------
    int
        The logging level.

    Examples
    --------
    >>> _parse_log_level("INFO")
    20
    >>> _parse_log_level("DEBUG")
    10
    >>> _parse_log_level(logging.WARNING)
    30
    >>> _parse_log_level(None)
    20
    """
    if value is None:
        return logging.INFO
    if isinstance(value, int):
        return value
    return getattr(logging, str(value).upper(), logging.INFO)


def _optional_path(value: str | Path | None) -> Path | None:
    if not value:
        return None
    return Path(value).expanduser().resolve()


def parse_atlases(
    atlas_configs: list[dict],
    default_space: str | None = None,
) -> dict[str, AtlasDefinition]:
    """Parse atlas definitions from configuration into a registry.

    Parameters
    ----------
    atlas_configs
        List of atlas configuration dictionaries. Each dict should have
        'name', 'path' and 'lut' keys, and optionally 'key', 'probability'
        and 'space'.
    default_space
        Default space to use if not specified in the config.

    Returns
    -------
    dict[str, AtlasDefinition]
        Atlas definitions keyed by their selector. The selector is the
        entry's 'key' when present, its 'name' otherwise.
    """
    registry: dict[str, AtlasDefinition] = {}
    for cfg in atlas_configs:
        name = cfg.get("name")
        path = cfg.get("path")
        lut = cfg.get("lut")
        if not name or not path or not lut:
            logger.warning("Skipping atlas with missing name, path or lut: %s", cfg)
            continue
        key = str(cfg.get("key", name))
        if key in registry:
            logger.warning("Atlas key %s defined more than once; keeping the last definition", key)
        registry[key] = AtlasDefinition(
            key=key,
            name=name,
            nifti_path=Path(path).expanduser().resolve(),
            lut=Path(lut).expanduser().resolve(),
            probability_path=_optional_path(cfg.get("probability")),
            space=cfg.get("space", default_space),
        )
    return registry


def write_table_sidecar(
    tsv_path: Path,
    stat_file: Path | None,
    atlas_name: str,
    polarity: str,
    coverage_threshold: float,
    stat_type: str,
    n_clusters: int,
) -> Path:
    """Write a JSON sidecar file alongside a cluster table TSV.

    Parameters
    ----------
    tsv_path
        Path to the cluster table. The JSON will share its stem.
    stat_file
        Path to the statistic image that was tabulated, or None for an
        in-memory image.
    atlas_name
        Name of the labeling atlas.
    polarity
        "positive" or "negative".
    coverage_threshold
        Atlas coverage threshold applied before labeling.
    stat_type
        Declared statistic type of the image (e.g. "T").
    n_clusters
        Number of rows in the table.

    Returns
    -------
    Path
        Path to the written JSON sidecar file.
    """
    try:
        from importlib.metadata import version as pkg_version

        software_version = pkg_version("blobtable")
    except Exception:
        software_version = "unknown"

    sidecar: dict = {
        "statistic_image": str(stat_file) if stat_file is not None else None,
        "statistic_type": stat_type,
        "polarity": polarity,
        "atlas": atlas_name,
        "coverage_threshold": coverage_threshold,
        "n_clusters": n_clusters,
        "software_version": software_version,
        "timestamp": datetime.now(tz=timezone.utc).isoformat(),
    }

    json_path = tsv_path.with_suffix(".json")
    json_path.write_text(json.dumps(sidecar, indent=2) + "\n")
    logger.debug("Wrote cluster table sidecar to %s", json_path)
    return json_path
