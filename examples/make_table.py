"""Example: tabulate a thresholded t-map with a CANLab-style atlas.

Usage::

    python examples/make_table.py tmap_thresholded.nii.gz atlas.nii.gz atlas.tsv
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from blobtable import Atlas, table_for_publication
from blobtable.atlas import CANONICAL_ATLAS_NAME

logger = logging.getLogger(__name__)


def main(stat_path: Path, atlas_path: Path, lut_path: Path) -> None:
    atlas = Atlas(CANONICAL_ATLAS_NAME, atlas_path, lut_path)
    tables = table_for_publication(stat_path, atlas, include_negative=True, verbose=False)

    for polarity, table in tables._asdict().items():
        logger.info("%s clusters: %d", polarity, len(table))
        print(table.to_string(index=False))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    main(*(Path(arg) for arg in sys.argv[1:4]))
