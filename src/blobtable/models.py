"""Structured representations of pipeline inputs, intermediates and outputs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class AtlasDefinition:
    """Description of an atlas available to the pipeline.

    ``key`` is the short selector used on the command line (e.g. ``canlab2023``);
    ``name`` is the atlas's full name as carried by the loaded object.
    """

    key: str
    name: str
    nifti_path: Path
    lut: Path
    probability_path: Path | None = None
    space: str | None = None


@dataclass
class TableConfig:
    """Configuration for building publication tables from a statistic image."""

    stat_img: Path | None = None
    output_dir: Path | None = None
    atlas: str = "canlab2023"
    atlases: dict[str, AtlasDefinition] = field(default_factory=dict)
    include_negative: bool = False
    coverage_threshold: float = 0.0
    stat_type: str = "T"
    verbose: bool = True
    show_legend: bool = True
    allow_ambiguous: bool = False
    log_level: int = logging.INFO


@dataclass(frozen=True)
class AlignedCluster:
    """One cluster with fields bound from every descriptor table."""

    position: int
    volume_mm3: float
    region_names: tuple[str, ...]
    x: float
    y: float
    z: float
    peak_value: float
    network: str


@dataclass(frozen=True)
class AnnotatedRow:
    """One row of a publication table."""

    cluster: int
    volume_mm3: float
    region_names: str
    heuristic_names: str
    x: float
    y: float
    z: float
    peak_value: float
    network: str
