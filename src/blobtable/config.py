"""Load table configuration from TOML with command-line overrides."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

try:  # Python 3.11+
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - fallback for older environments
    import tomli as tomllib  # type: ignore[import]

from blobtable.atlas import DEFAULT_ATLAS
from blobtable.models import TableConfig
from blobtable.utils import _parse_log_level, parse_atlases

LOGGER = logging.getLogger(__name__)


def _flag(cli_value: bool | None, data: dict, key: str, default: bool) -> bool:
    if cli_value is not None:
        return bool(cli_value)
    return bool(data.get(key, default))


def load_config(args: argparse.Namespace) -> TableConfig:
    """Parse a TOML configuration file and override with CLI arguments.

    The configuration accepts the following keys:
    - ``stat_img``: Path to the thresholded statistic image.
    - ``output_dir``: Destination directory for the tables.
    - ``atlas``: Key of the labeling atlas (default ``canlab2023``).
    - ``atlases``: List of atlas definitions (each with key, name, path, lut,
      and optionally probability and space).
    - ``include_negative``: Whether to tabulate negative clusters too.
    - ``coverage_threshold``: Atlas probability threshold (default 0).
    - ``stat_type``: Declared statistic type of the image (default ``T``).
    - ``verbose``: Whether to print the intermediate peak table.
    - ``show_legend``: Whether to print the legend of the peak table.
    - ``allow_ambiguous``: Whether to accept ambiguous cluster matches.
    - ``log_level``: Logging verbosity (e.g., ``INFO``, ``DEBUG``).
    """
    data: dict = {}
    if args.config:
        with args.config.open("rb") as f:
            data = tomllib.load(f)

    stat_img_str = args.stat_img or data.get("stat_img")
    stat_img = Path(stat_img_str).expanduser().resolve() if stat_img_str else None
    output_dir_str = args.output_dir or data.get("output_dir")
    if output_dir_str:
        output_dir = Path(output_dir_str).expanduser().resolve()
    else:
        output_dir = stat_img.parent if stat_img is not None else Path.cwd()

    atlas_configs = []
    if args.atlas_config:
        for atlas_path in args.atlas_config:
            with atlas_path.open("rb") as f:
                atlas_configs.append(tomllib.load(f))
    else:
        atlas_configs = data.get("atlases", [])
    atlases = parse_atlases(atlas_configs, default_space="MNI152NLin2009cAsym")

    threshold = args.threshold if args.threshold is not None else data.get("coverage_threshold", 0.0)

    return TableConfig(
        stat_img=stat_img,
        output_dir=output_dir,
        atlas=args.atlas or data.get("atlas", DEFAULT_ATLAS),
        atlases=atlases,
        include_negative=_flag(args.include_negative, data, "include_negative", False),
        coverage_threshold=float(threshold),
        stat_type=str(args.stat_type or data.get("stat_type", "T")),
        verbose=_flag(args.verbose, data, "verbose", True),
        show_legend=_flag(args.show_legend, data, "show_legend", True),
        allow_ambiguous=_flag(args.allow_ambiguous, data, "allow_ambiguous", False),
        log_level=_parse_log_level(args.log_level or data.get("log_level")),
    )
