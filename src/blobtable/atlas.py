"""Label atlases: lookup tables, probability thresholding, resampling and network collapse."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import ClassVar

import nibabel as nib
import numpy as np
import pandas as pd
from nilearn.image import resample_to_img

from blobtable.exceptions import AtlasError
from blobtable.labels import network_labels, stable_unique
from blobtable.models import AtlasDefinition
from blobtable.utils import _load_nifti

logger = logging.getLogger(__name__)

#: Full name of the atlas that ships a heuristic-grouping table.
CANONICAL_ATLAS_NAME = "CANLab2023_MNI152NLin2009cAsym_coarse_2mm"

#: Registry key selected when no atlas is requested.
DEFAULT_ATLAS = "canlab2023"


class Atlas:
    """Integer-valued label atlas with region, network and heuristic lookups.

    Each non-background voxel of the atlas image stores the ``index`` of a row
    of the lookup table. The table must provide ``index`` and ``label``
    columns; ``network`` (coarse network of each cortical region) and
    ``heuristic`` (heuristic grouping of each region) are optional. An
    optional 4-D probability image with one frame per lookup-table row is used
    by :meth:`threshold` to relabel voxels by their most probable region.
    """

    REQUIRED_LUT_COLUMNS: ClassVar[set[str]] = {"index", "label"}

    def __init__(
        self,
        name: str,
        atlas_img: nib.Nifti1Image | str | Path,
        lut: pd.DataFrame | str | Path,
        *,
        probability_img: nib.Nifti1Image | str | Path | None = None,
    ) -> None:
        """
        Initialize an atlas

        Parameters
        ----------
        name : str
            Full name of the atlas.
        atlas_img : nib.Nifti1Image | str | Path
            3-D integer label image.
        lut : pd.DataFrame | str | Path
            Lookup table (or path to a TSV) with at least "index" and "label".
        probability_img : nib.Nifti1Image | str | Path | None, optional
            4-D probability image with one frame per lookup-table row, by
            default None
        """
        self.name = str(name)
        self.atlas_img = _load_nifti(atlas_img)
        self.lut = self._load_atlas_lut(lut)
        self.probability_img = _load_nifti(probability_img) if probability_img is not None else None
        self._atlas_data = self._load_atlas_data()

    def __repr__(self) -> str:
        return f"Atlas(name={self.name!r}, regions={len(self.lut)})"

    def _load_atlas_lut(self, lut: pd.DataFrame | str | Path) -> pd.DataFrame:
        """
        Load atlas lookup table and make sure it contains required columns

        Raises
        ------
        AtlasError
            If required columns are missing or indices are not unique positive integers.
        """
        lut_df = lut.copy() if isinstance(lut, pd.DataFrame) else pd.read_csv(lut, sep="\t")
        required_columns = self.REQUIRED_LUT_COLUMNS
        if not required_columns.issubset(lut_df.columns):
            missing = required_columns - set(lut_df.columns)
            raise AtlasError(f"Lookup table is missing required columns: {missing}")

        lut_df["index"] = lut_df["index"].astype(int)
        lut_df["label"] = lut_df["label"].astype(str)
        if lut_df["index"].duplicated().any():
            raise AtlasError(f"Lookup table of atlas {self.name} has duplicated indices.")
        if (lut_df["index"] <= 0).any():
            raise AtlasError(f"Lookup table of atlas {self.name} must only contain positive indices.")
        return lut_df.reset_index(drop=True)

    def _load_atlas_data(self) -> np.ndarray:
        atlas_data = np.asarray(self.atlas_img.get_fdata())
        if atlas_data.ndim != 3:
            raise AtlasError("Atlas must be a 3D volume.")
        atlas_data = np.rint(atlas_data).astype(int)
        unknown = (atlas_data != 0) & ~np.isin(atlas_data, self.lut["index"].to_numpy())
        if unknown.any():
            logger.debug("Atlas %s: %d voxels carry indices missing from the lookup table", self.name, unknown.sum())
            atlas_data[unknown] = 0
        return atlas_data

    @property
    def data(self) -> np.ndarray:
        """Integer label array (0 is background)."""
        return self._atlas_data

    @property
    def labels(self) -> tuple[str, ...]:
        """Region labels in lookup-table order."""
        return tuple(self.lut["label"])

    @property
    def label_names(self) -> dict[int, str]:
        """Mapping of atlas index to region label."""
        return dict(zip(self.lut["index"], self.lut["label"]))

    @property
    def is_canonical(self) -> bool:
        return self.name == CANONICAL_ATLAS_NAME

    @property
    def has_heuristics(self) -> bool:
        return "heuristic" in self.lut.columns and bool(self.lut["heuristic"].notna().any())

    def _lookup(self, column: str) -> dict[str, str]:
        if column not in self.lut.columns:
            return {}
        rows = self.lut.loc[self.lut[column].notna(), ["label", column]]
        return {label: str(value) for label, value in zip(rows["label"], rows[column])}

    @property
    def network_lookup(self) -> dict[str, str]:
        """Mapping of region label to coarse network name."""
        return self._lookup("network")

    @property
    def heuristic_lookup(self) -> dict[str, str]:
        """Mapping of region label to heuristic group name."""
        return self._lookup("heuristic")

    def _derive(self, name: str, data: np.ndarray, lut: pd.DataFrame) -> Atlas:
        img = nib.Nifti1Image(data.astype(np.int32), self.atlas_img.affine)
        return Atlas(name, img, lut)

    def threshold(self, threshold: float) -> Atlas:
        """Return a copy of the atlas keeping voxels whose label probability exceeds *threshold*.

        Voxels are relabeled with their most probable region. Without a
        probability image each labeled voxel counts as probability 1.0, so
        any threshold of 1.0 or more yields an empty atlas.
        """
        threshold = float(threshold)
        if self.probability_img is None:
            data = self._atlas_data if 1.0 > threshold else np.zeros_like(self._atlas_data)
        else:
            prob = np.asarray(self.probability_img.get_fdata())
            if prob.ndim != 4 or prob.shape[:3] != self._atlas_data.shape or prob.shape[3] != len(self.lut):
                raise AtlasError(
                    f"Probability image of atlas {self.name} has shape {prob.shape}; "
                    f"expected {self._atlas_data.shape + (len(self.lut),)}."
                )
            best = np.argmax(prob, axis=3)
            best_prob = np.take_along_axis(prob, best[..., np.newaxis], axis=3)[..., 0]
            indices = self.lut["index"].to_numpy()
            keep = (best_prob > threshold) & (self._atlas_data != 0)
            data = np.where(keep, indices[best], 0)

        logger.debug(
            "Thresholded atlas %s at %s: %d labeled voxels remain", self.name, threshold, np.count_nonzero(data)
        )
        return self._derive(self.name, data, self.lut)

    def resample_to(self, target_img: nib.Nifti1Image) -> Atlas:
        """Return the atlas on the grid of *target_img* (nearest neighbour)."""
        if target_img.shape[:3] == self._atlas_data.shape and np.allclose(target_img.affine, self.atlas_img.affine):
            return self
        logger.info("Resampling atlas %s to the statistic image grid", self.name)
        resampled = resample_to_img(self.atlas_img, target_img, interpolation="nearest")
        return Atlas(self.name, resampled, self.lut)

    def network_atlas(self) -> Atlas:
        """Collapse fine regions into their networks.

        Every fine region is mapped to its network (cortical regions) or to the
        sub-cortical sentinel; the result has one region per distinct network,
        numbered in order of first appearance in the lookup table.
        """
        by_label = network_labels(self)
        networks = stable_unique(by_label[label] for label in self.labels)
        network_index = {network: i + 1 for i, network in enumerate(networks)}

        remap = np.zeros(int(self.lut["index"].max()) + 1, dtype=int)
        for index, label in zip(self.lut["index"], self.lut["label"]):
            remap[index] = network_index[by_label[label]]

        lut = pd.DataFrame({"index": list(network_index.values()), "label": list(network_index.keys())})
        return self._derive(f"{self.name}_networks", remap[self._atlas_data], lut)


def load_atlas(definition: AtlasDefinition) -> Atlas:
    """Load an atlas from its definition."""
    logger.info("Loading atlas %s from %s", definition.name, definition.nifti_path)
    return Atlas(
        definition.name,
        definition.nifti_path,
        definition.lut,
        probability_img=definition.probability_path,
    )


def resolve_atlas(selector: str | None, registry: Mapping[str, AtlasDefinition] | None) -> Atlas:
    """Load the atlas registered under *selector* (default :data:`DEFAULT_ATLAS`)."""
    key = selector or DEFAULT_ATLAS
    registry = registry or {}
    if key not in registry:
        known = ", ".join(sorted(registry)) or "none"
        raise AtlasError(f"Unknown atlas {key!r}; registered atlases: {known}")
    return load_atlas(registry[key])
