"""
Read-only snapshot of a treatment plan as handed over by the host planning system.

The host builds these objects once per export; the document builder only reads them.
"""
from __future__ import annotations


from enum import Enum
from datetime import datetime
from dataclasses import dataclass, field
from typing import Optional, Tuple


TARGET_ID_MARKERS: Tuple[str, ...] = ("GTV", "PTV", "CTV")


def is_target_structure(structure_id: Optional[str]) -> bool:
    """Return True if the structure id contains GTV, PTV or CTV (case-insensitive)."""
    if not structure_id:
        return False
    upper_id = structure_id.upper()
    return any(marker in upper_id for marker in TARGET_ID_MARKERS)


class MLCPlanType(Enum):
    """MLC plan type tags reported by the host for each beam."""
    STATIC = "Static"
    DOSE_DYNAMIC = "DoseDynamic"
    ARC_DYNAMIC = "ArcDynamic"
    VMAT = "VMAT"
    NOT_DEFINED = "NotDefined"


@dataclass(frozen=True)
class Vector3:
    """Point or direction in patient coordinates (mm)."""
    x: float
    y: float
    z: float

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.x, self.y, self.z)


@dataclass(frozen=True)
class DoseValue:
    """Dose magnitude with its unit label (e.g. 'Gy', 'cGy')."""
    dose: float
    unit: str


@dataclass(frozen=True)
class ControlPoint:
    """Machine geometry at one control point of a beam (degrees)."""
    gantry_angle: float
    collimator_angle: float


@dataclass(frozen=True)
class BeamSnapshot:
    """Treatment or setup field of the plan."""
    beam_number: int
    beam_id: str
    control_points: Tuple[ControlPoint, ...] = ()
    meterset: Optional[float] = None          # MU
    dose_rate: Optional[int] = None           # MU/min
    energy_mode: Optional[str] = None         # e.g. "6X-FFF"
    mlc_plan_type: MLCPlanType = MLCPlanType.NOT_DEFINED
    treatment_unit_id: Optional[str] = None
    is_setup_field: bool = False


@dataclass(frozen=True)
class StructureSnapshot:
    """Contoured structure; geometry is not carried."""
    structure_id: str
    volume: float                             # cc
    color: Tuple[int, int, int] = (0, 0, 0)
    dicom_type: Optional[str] = None

    @property
    def is_target(self) -> bool:
        return is_target_structure(self.structure_id)


@dataclass(frozen=True)
class ImageReference:
    """Image the structure set was contoured on."""
    image_id: str
    frame_of_reference_uid: Optional[str] = None


@dataclass(frozen=True)
class StructureSetSnapshot:
    structure_set_id: str
    structures: Tuple[StructureSnapshot, ...] = ()
    image: Optional[ImageReference] = None


@dataclass(frozen=True)
class DoseSummary:
    """
    Summary statistics of the calculated dose grid.

    Only grid geometry and the maximum are carried; per-voxel dose values are
    intentionally not part of the snapshot.
    """
    dose_id: str
    x_size: int
    y_size: int
    z_size: int
    x_res: float
    y_res: float
    z_res: float
    origin: Vector3
    unit: str
    max_dose: float
    max_dose_location: Vector3


@dataclass(frozen=True)
class PlanSnapshot:
    """Plan, its identifiers and its optional associated structure set and dose."""
    patient_id: str
    patient_name: str
    course_id: str
    plan_id: str
    creation_datetime: Optional[datetime] = None
    total_dose: Optional[DoseValue] = None
    number_of_fractions: Optional[int] = None
    beams: Tuple[BeamSnapshot, ...] = field(default_factory=tuple)
    structure_set: Optional[StructureSetSnapshot] = None
    dose: Optional[DoseSummary] = None
