"""Synthetic atlas and statistic images for blobtable tests.

All images live on a 16x16x16 grid of 1 mm voxels whose origin is translated
to (0, -10, 20) mm, so voxel (i, j, k) sits at world (i, j - 10, k + 20).

Atlas layout (voxel indices):
    i in 0..3                  background
    i in 4..12, j < 12         1 Ctx_A      (Visual, heuristic "Vision")
    i in 13..15, j < 12        2 Ctx_B      (Visual, heuristic "Vision")
    i >= 4, j >= 12            3 Thal_Pulv  (no network, heuristic "Thalamus")
"""

from __future__ import annotations

import nibabel as nib
import numpy as np
import pandas as pd

from blobtable.atlas import CANONICAL_ATLAS_NAME, Atlas

SHAPE = (16, 16, 16)


def grid_affine() -> np.ndarray:
    affine = np.eye(4)
    affine[:3, 3] = [0.0, -10.0, 20.0]
    return affine


def atlas_lut() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "index": [1, 2, 3],
            "label": ["Ctx_A", "Ctx_B", "Thal_Pulv"],
            "network": ["Visual", "Visual", None],
            "heuristic": ["Vision", "Vision", "Thalamus"],
        }
    )


def atlas_img() -> nib.Nifti1Image:
    data = np.zeros(SHAPE, dtype=np.int16)
    data[4:13, :12, :] = 1
    data[13:, :12, :] = 2
    data[4:, 12:, :] = 3
    return nib.Nifti1Image(data, grid_affine())


def make_atlas(name: str = CANONICAL_ATLAS_NAME) -> Atlas:
    return Atlas(name, atlas_img(), atlas_lut())


def stat_img(data: np.ndarray) -> nib.Nifti1Image:
    return nib.Nifti1Image(data.astype(np.float32), grid_affine())


def scenario_data() -> np.ndarray:
    """One covered positive cluster, one uncovered positive cluster, one negative cluster.

    Positive covered: i 10..13, j 4..8, k 8..13 (120 voxels), 90 in Ctx_A and
    30 in Ctx_B, peak 4.5 at voxel (12, 6, 10) = (12, -4, 30) mm.
    Positive uncovered: i 0..1, j 0..1, k 0..1 (8 voxels, background only).
    Negative: i 5..6, j 12..13, k 2..3 (8 voxels in Thal_Pulv), peak -5.0 at
    voxel (5, 12, 2) = (5, 2, 22) mm.
    """
    data = np.zeros(SHAPE, dtype=np.float32)
    data[10:14, 4:9, 8:14] = 2.0
    data[12, 6, 10] = 4.5
    data[0:2, 0:2, 0:2] = 3.0
    data[5:7, 12:14, 2:4] = -3.0
    data[5, 12, 2] = -5.0
    return data


def twin_data() -> np.ndarray:
    """Two positive clusters inside Ctx_A with identical volume and coverage."""
    data = np.zeros(SHAPE, dtype=np.float32)
    data[5:7, 0:2, 0:2] = 3.0
    data[5:7, 0:2, 5:7] = 5.0
    return data


