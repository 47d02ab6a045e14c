from __future__ import annotations

from pathlib import Path

import nibabel as nib
import numpy as np
import pandas as pd
import pytest

from blobtable.atlas import DEFAULT_ATLAS, Atlas, load_atlas, resolve_atlas
from blobtable.exceptions import AtlasError
from blobtable.labels import SUBCORTICAL_NETWORK
from blobtable.models import AtlasDefinition

from helpers import atlas_img, atlas_lut, grid_affine, make_atlas


def _small_atlas(probability: np.ndarray | None = None) -> Atlas:
    data = np.array(
        [
            [[0, 1], [1, 2]],
            [[0, 2], [2, 2]],
        ],
        dtype=np.int16,
    )
    lut = pd.DataFrame({"index": [1, 2], "label": ["Ctx_A", "Ctx_B"], "network": ["Visual", "Default"]})
    prob_img = nib.Nifti1Image(probability, np.eye(4)) if probability is not None else None
    return Atlas("small", nib.Nifti1Image(data, np.eye(4)), lut, probability_img=prob_img)


def test_atlas_exposes_lookups(canonical_atlas: Atlas) -> None:
    assert canonical_atlas.labels == ("Ctx_A", "Ctx_B", "Thal_Pulv")
    assert canonical_atlas.label_names == {1: "Ctx_A", 2: "Ctx_B", 3: "Thal_Pulv"}
    assert canonical_atlas.network_lookup == {"Ctx_A": "Visual", "Ctx_B": "Visual"}
    assert canonical_atlas.heuristic_lookup["Thal_Pulv"] == "Thalamus"
    assert canonical_atlas.is_canonical
    assert canonical_atlas.has_heuristics


def test_lut_requires_index_and_label() -> None:
    with pytest.raises(AtlasError, match="missing required columns"):
        Atlas("bad", atlas_img(), pd.DataFrame({"index": [1], "name": ["A"]}))


def test_lut_rejects_duplicated_indices() -> None:
    lut = pd.DataFrame({"index": [1, 1], "label": ["A", "B"]})
    with pytest.raises(AtlasError, match="duplicated"):
        Atlas("bad", atlas_img(), lut)


def test_lut_rejects_background_index() -> None:
    lut = pd.DataFrame({"index": [0, 1], "label": ["Background", "A"]})
    with pytest.raises(AtlasError, match="positive"):
        Atlas("bad", atlas_img(), lut)


def test_atlas_must_be_3d() -> None:
    img = nib.Nifti1Image(np.ones((2, 2, 2, 2), dtype=np.int16), np.eye(4))
    with pytest.raises(AtlasError, match="3D"):
        Atlas("bad", img, atlas_lut())


def test_unknown_indices_become_background() -> None:
    lut = atlas_lut().iloc[:2]
    atlas = Atlas("partial", atlas_img(), lut)

    assert set(np.unique(atlas.data)) == {0, 1, 2}


def test_threshold_without_probabilities(canonical_atlas: Atlas) -> None:
    kept = canonical_atlas.threshold(0.0)
    emptied = canonical_atlas.threshold(1.0)

    np.testing.assert_array_equal(kept.data, canonical_atlas.data)
    assert not emptied.data.any()
    assert emptied.name == canonical_atlas.name
    assert emptied.labels == canonical_atlas.labels


def test_threshold_relabels_by_most_probable_region() -> None:
    probability = np.zeros((2, 2, 2, 2))
    probability[0, 0, 1] = [0.9, 0.1]
    probability[0, 1, 0] = [0.3, 0.6]
    probability[0, 1, 1] = [0.2, 0.2]
    probability[1, 0, 1] = [0.0, 0.4]
    probability[1, 1, 0] = [0.7, 0.3]
    probability[1, 1, 1] = [0.1, 0.8]
    probability[0, 0, 0] = [0.9, 0.0]  # background in the label image
    atlas = _small_atlas(probability)

    thresholded = atlas.threshold(0.5).data

    assert thresholded[0, 0, 1] == 1
    assert thresholded[0, 1, 0] == 2
    assert thresholded[0, 1, 1] == 0
    assert thresholded[1, 0, 1] == 0
    assert thresholded[1, 1, 0] == 1
    assert thresholded[1, 1, 1] == 2
    assert thresholded[0, 0, 0] == 0


def test_threshold_rejects_mismatched_probability_image() -> None:
    atlas = _small_atlas(np.zeros((2, 2, 2, 3)))
    with pytest.raises(AtlasError, match="Probability image"):
        atlas.threshold(0.0)


def test_resample_to_same_grid_returns_self(canonical_atlas: Atlas) -> None:
    target = nib.Nifti1Image(np.zeros((16, 16, 16), dtype=np.float32), grid_affine())

    assert canonical_atlas.resample_to(target) is canonical_atlas


def test_resample_to_coarser_grid(canonical_atlas: Atlas) -> None:
    affine = grid_affine()
    affine[:3, :3] *= 2
    target = nib.Nifti1Image(np.zeros((8, 8, 8), dtype=np.float32), affine)

    resampled = canonical_atlas.resample_to(target)

    assert resampled.data.shape == (8, 8, 8)
    assert set(np.unique(resampled.data)) <= {0, 1, 2, 3}
    assert resampled.name == canonical_atlas.name


def test_network_atlas_collapses_regions(canonical_atlas: Atlas) -> None:
    networks = canonical_atlas.network_atlas()

    assert networks.name.endswith("_networks")
    assert networks.labels == ("Visual", SUBCORTICAL_NETWORK)
    visual = canonical_atlas.data == 1
    visual |= canonical_atlas.data == 2
    assert (networks.data[visual] == 1).all()
    assert (networks.data[canonical_atlas.data == 3] == 2).all()
    assert (networks.data[canonical_atlas.data == 0] == 0).all()


def _write_atlas(tmp_path: Path) -> AtlasDefinition:
    nifti_path = tmp_path / "atlas.nii.gz"
    lut_path = tmp_path / "atlas.tsv"
    nib.save(atlas_img(), nifti_path)
    atlas_lut().to_csv(lut_path, sep="\t", index=False)
    return AtlasDefinition(key=DEFAULT_ATLAS, name="FromDisk", nifti_path=nifti_path, lut=lut_path)


def test_load_atlas_from_disk(tmp_path: Path) -> None:
    atlas = load_atlas(_write_atlas(tmp_path))

    np.testing.assert_array_equal(atlas.data, make_atlas().data)
    assert atlas.name == "FromDisk"
    assert atlas.network_lookup["Ctx_A"] == "Visual"


def test_resolve_atlas_uses_default_key(tmp_path: Path) -> None:
    registry = {DEFAULT_ATLAS: _write_atlas(tmp_path)}

    assert resolve_atlas(None, registry).name == "FromDisk"


def test_resolve_atlas_unknown_key() -> None:
    with pytest.raises(AtlasError, match="Unknown atlas 'missing'"):
        resolve_atlas("missing", {})
