"""Command-line entry point for blobtable.

Usage::

    blobtable <stat_img> <output_dir> \\
        [--config CONFIG.toml] [--atlas-config ATLAS.toml [ATLAS.toml ...]] \\
        [--atlas NAME] [--threshold T] [--include-negative] [--stat-type T] \\
        [--noverbose] [--nolegend] [--allow-ambiguous] [--log-level LEVEL]
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import pandas as pd

from blobtable.config import load_config
from blobtable.models import TableConfig
from blobtable.table import table_for_publication
from blobtable.utils import write_table_sidecar

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="blobtable",
        description=(
            "Build publication tables of activation clusters from a thresholded statistic image: "
            "one row per cluster with atlas regions, network, peak coordinates and peak statistic."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "stat_img",
        nargs="?",
        type=Path,
        help="Thresholded statistic image (NIfTI, single frame). May be set in --config instead.",
    )
    parser.add_argument(
        "output_dir",
        nargs="?",
        type=Path,
        help="Directory where tables are written. Defaults to the statistic image's directory.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to a TOML configuration file (atlas definitions, defaults).",
    )
    parser.add_argument(
        "--atlas-config",
        type=Path,
        nargs="+",
        dest="atlas_config",
        help="Path to one or more TOML files defining atlases (overrides [[atlases]] in --config).",
    )
    parser.add_argument(
        "--atlas",
        help="Key of the labeling atlas. Default: canlab2023.",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Atlas probability threshold; voxels at or below it are unlabeled. Default: 0.",
    )
    parser.add_argument(
        "--include-negative",
        action="store_true",
        default=None,
        dest="include_negative",
        help="Also tabulate negative clusters.",
    )
    parser.add_argument(
        "--stat-type",
        dest="stat_type",
        help="Statistic type of the image, used to name the peak column (e.g. T, F, Z). Default: T.",
    )
    parser.add_argument(
        "--noverbose",
        action="store_false",
        default=None,
        dest="verbose",
        help="Do not print the intermediate peak table.",
    )
    parser.add_argument(
        "--nolegend",
        action="store_false",
        default=None,
        dest="show_legend",
        help="Do not print the peak table legend.",
    )
    parser.add_argument(
        "--allow-ambiguous",
        action="store_true",
        default=None,
        dest="allow_ambiguous",
        help="Bind the first of several clusters with identical descriptors instead of failing.",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        help="Logging verbosity. Default: INFO.",
    )
    return parser


def _table_stem(stat_img: Path) -> str:
    name = stat_img.name
    for suffix in (".nii.gz", ".nii"):
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return stat_img.stem


def write_tables(config: TableConfig, tables: dict[str, pd.DataFrame], atlas_name: str) -> list[Path]:
    """Write each table as TSV with a JSON sidecar; return the TSV paths."""
    config.output_dir.mkdir(parents=True, exist_ok=True)
    stem = _table_stem(config.stat_img)
    written = []
    for polarity, table in tables.items():
        tsv_path = config.output_dir / f"{stem}_desc-{polarity}_clusters.tsv"
        table.to_csv(tsv_path, sep="\t", index=False)
        write_table_sidecar(
            tsv_path,
            stat_file=config.stat_img,
            atlas_name=atlas_name,
            polarity=polarity,
            coverage_threshold=config.coverage_threshold,
            stat_type=config.stat_type,
            n_clusters=len(table),
        )
        LOGGER.info("Wrote %d %s clusters to %s", len(table), polarity, tsv_path)
        written.append(tsv_path)
    return written


def run(config: TableConfig) -> list[Path]:
    """Build the tables described by *config* and write them to disk."""
    if config.stat_img is None:
        raise ValueError("No statistic image given; pass it on the command line or set stat_img in --config.")

    registry = config.atlases
    atlas_name = registry[config.atlas].name if config.atlas in registry else config.atlas
    tables = table_for_publication(
        config.stat_img,
        config.atlas,
        include_negative=config.include_negative,
        threshold=config.coverage_threshold,
        verbose=config.verbose,
        show_legend=config.show_legend,
        stat_type=config.stat_type,
        allow_ambiguous=config.allow_ambiguous,
        atlas_registry=registry,
    )
    outputs = {"positive": tables.positive}
    if tables.negative is not None:
        outputs["negative"] = tables.negative
    return write_tables(config, outputs, atlas_name)


def main(argv: list[str] | None = None) -> int:
    """Entry point for the blobtable CLI."""
    argv = list(argv) if argv is not None else sys.argv[1:]

    parser = build_parser()
    if not argv:
        parser.print_help()
        return 1

    args = parser.parse_args(argv)
    config = load_config(args)
    logging.basicConfig(level=config.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        run(config)
    except Exception:
        LOGGER.exception("Cluster table generation failed")
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
