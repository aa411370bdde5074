from __future__ import annotations


import logging
from typing import Tuple


import numpy as np
import SimpleITK as sitk


from srs_export.utils.plan_snapshot_object import DoseSummary, Vector3


logger = logging.getLogger(__name__)


def _find_max_dose(sitk_dose: sitk.Image) -> Tuple[float, Tuple[int, int, int]]:
    """Return the maximum dose and its (x, y, z) voxel index."""
    dose_array = sitk.GetArrayViewFromImage(sitk_dose)  # (z, y, x)
    if np.all(np.isnan(dose_array)):
        logger.warning("Dose grid contains no finite values; maximum dose unavailable.")
        return float("nan"), (0, 0, 0)
    flat_index = int(np.nanargmax(dose_array))
    z_idx, y_idx, x_idx = np.unravel_index(flat_index, dose_array.shape)
    return float(dose_array[z_idx, y_idx, x_idx]), (int(x_idx), int(y_idx), int(z_idx))


def build_dose_summary(sitk_dose: sitk.Image, dose_id: str, dose_unit: str = "Gy") -> DoseSummary:
    """
    Summarize a scaled 3D dose image.

    Args:
        sitk_dose: Dose grid with values already in dose_unit.
        dose_id: Identifier of the dose (exported as its SOP instance UID).
        dose_unit: Unit label of the voxel values.

    Returns:
        DoseSummary with grid size, spacing, origin and the location of the maximum.
        Voxel values are not retained.
    """
    if not isinstance(sitk_dose, sitk.Image):
        raise ValueError(f"Input must be a SimpleITK Image, but got {type(sitk_dose)}.")
    if sitk_dose.GetDimension() != 3:
        raise ValueError(f"Input must be a 3D SimpleITK Image, but got {sitk_dose.GetDimension()}D.")

    x_size, y_size, z_size = sitk_dose.GetSize()
    x_res, y_res, z_res = sitk_dose.GetSpacing()
    origin = sitk_dose.GetOrigin()

    max_dose, max_index = _find_max_dose(sitk_dose)
    max_location = sitk_dose.TransformIndexToPhysicalPoint(max_index)
    logger.debug(f"Dose '{dose_id}': max {max_dose:.4f} {dose_unit} at index {max_index}, point {max_location}.")

    return DoseSummary(
        dose_id=dose_id,
        x_size=int(x_size),
        y_size=int(y_size),
        z_size=int(z_size),
        x_res=float(x_res),
        y_res=float(y_res),
        z_res=float(z_res),
        origin=Vector3(*(float(c) for c in origin)),
        unit=dose_unit,
        max_dose=max_dose,
        max_dose_location=Vector3(*(float(c) for c in max_location)),
    )
