"""Split a thresholded statistic image into positive and negative clusters."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import nibabel as nib
import numpy as np
from nibabel.affines import apply_affine
from scipy import ndimage

logger = logging.getLogger(__name__)

#: 18-connectivity: voxels sharing a face or an edge are neighbours.
CONNECTIVITY = ndimage.generate_binary_structure(3, 2)


@dataclass(frozen=True, eq=False)
class Cluster:
    """Connected suprathreshold voxels of one polarity.

    Attributes
    ----------
    voxels
        ``(n, 3)`` voxel indices, in raster order.
    values
        Statistic value at each voxel.
    affine
        Voxel-to-world affine of the source image.
    """

    voxels: np.ndarray
    values: np.ndarray
    affine: np.ndarray

    @property
    def n_voxels(self) -> int:
        return int(self.voxels.shape[0])

    @property
    def voxel_volume(self) -> float:
        return float(abs(np.linalg.det(self.affine[:3, :3])))

    @property
    def volume_mm3(self) -> float:
        return self.n_voxels * self.voxel_volume

    @property
    def peak_index(self) -> int:
        """Row of the voxel with the largest absolute value (first on ties)."""
        return int(np.argmax(np.abs(self.values)))

    @property
    def peak_value(self) -> float:
        return float(self.values[self.peak_index])

    @property
    def peak_xyz(self) -> tuple[float, float, float]:
        """World coordinate (mm) of the peak voxel."""
        x, y, z = apply_affine(self.affine, self.voxels[self.peak_index])
        return float(x), float(y), float(z)


def _label_clusters(mask: np.ndarray, data: np.ndarray, affine: np.ndarray) -> list[Cluster]:
    labeled, n_clusters = ndimage.label(mask, structure=CONNECTIVITY)
    clusters = []
    for label in range(1, n_clusters + 1):
        voxels = np.argwhere(labeled == label)
        clusters.append(Cluster(voxels=voxels, values=data[tuple(voxels.T)], affine=affine))
    return clusters


def split_clusters(stat_img: nib.Nifti1Image) -> tuple[list[Cluster], list[Cluster]]:
    """Separate a thresholded 3-D statistic image into positive and negative clusters.

    Non-zero voxels are treated as suprathreshold; NaNs are treated as zero.
    Clusters of each polarity are returned in scan order of their first voxel.
    """
    data = np.nan_to_num(np.asarray(stat_img.get_fdata()), nan=0.0)
    if data.ndim != 3:
        raise ValueError(f"Expected a 3D statistic image, got shape {data.shape}")

    positive = _label_clusters(data > 0, data, stat_img.affine)
    negative = _label_clusters(data < 0, data, stat_img.affine)
    logger.info("Found %d positive and %d negative clusters", len(positive), len(negative))
    return positive, negative
