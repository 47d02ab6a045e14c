from __future__ import annotations

import nibabel as nib
import pytest

from blobtable.atlas import Atlas
from helpers import make_atlas, scenario_data, stat_img, twin_data


@pytest.fixture
def canonical_atlas() -> Atlas:
    return make_atlas()


@pytest.fixture
def scenario_img() -> nib.Nifti1Image:
    return stat_img(scenario_data())


@pytest.fixture
def twin_img() -> nib.Nifti1Image:
    return stat_img(twin_data())
