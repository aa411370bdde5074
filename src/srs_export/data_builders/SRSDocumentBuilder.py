from __future__ import annotations


import math
import logging
from datetime import datetime
from typing import Any, Callable, List, Optional, Sequence, TYPE_CHECKING


from pydicom.uid import RTDoseStorage, RTStructureSetStorage


from srs_export.managers.config_manager import ExportConfig
from srs_export.utils.document_tree import ArrayNode, ObjectNode, serialize_document
from srs_export.utils.general_utils import format_datetime, format_rgb_hex, format_rgba
from srs_export.utils.plan_snapshot_object import MLCPlanType, is_target_structure


if TYPE_CHECKING:
    from srs_export.utils.plan_snapshot_object import (
        BeamSnapshot, DoseSummary, PlanSnapshot, StructureSetSnapshot, StructureSnapshot, Vector3
    )


logger = logging.getLogger(__name__)


class TechniqueLabels:
    """Plan technique labels understood by the viewer."""
    SINGLE_ARC = "Single Arc VMAT"
    MULTIPLE_ARC = "Multiple Arc VMAT"
    SINGLE_STATIC = "Single Static Beam"
    MULTIPLE_STATIC = "Multiple Static Beams"
    UNKNOWN = "Unknown"


ARC_GANTRY_DELTA_THRESHOLD = 5.0  # degrees
ARC_MIN_CONTROL_POINTS = 3
DOSE_TYPE = "PHYSICAL"

# Default for optional groups: use the group the plan itself carries
FROM_PLAN: Any = object()


def get_treatment_beams(beams: Sequence[BeamSnapshot]) -> List[BeamSnapshot]:
    """Return the beams that are not setup fields, in plan order."""
    return [beam for beam in beams if not beam.is_setup_field]


def calculate_total_mu(treatment_beams: Sequence[BeamSnapshot]) -> float:
    """Sum of finite beam MU; beams without a meterset contribute nothing."""
    total = 0.0
    for beam in treatment_beams:
        if beam.meterset is None or not math.isfinite(beam.meterset):
            logger.warning(f"Beam '{beam.beam_id}' has no valid meterset; excluded from total plan MU.")
            continue
        total += float(beam.meterset)
    return total


def is_arc_beam(beam: BeamSnapshot) -> bool:
    """
    Decide whether a beam is delivered as an arc.

    A beam is an arc if it is tagged for VMAT delivery, or if it has more than two
    control points and the gantry moves more than 5 degrees between the first and last.
    """
    if beam.mlc_plan_type == MLCPlanType.VMAT:
        return True
    control_points = beam.control_points
    if len(control_points) < ARC_MIN_CONTROL_POINTS:
        return False
    gantry_delta = abs(control_points[-1].gantry_angle - control_points[0].gantry_angle)
    return gantry_delta > ARC_GANTRY_DELTA_THRESHOLD


def determine_technique(treatment_beams: Sequence[BeamSnapshot]) -> str:
    """Classify the plan technique from its treatment beams."""
    if not treatment_beams:
        return TechniqueLabels.UNKNOWN

    single = len(treatment_beams) == 1
    if any(is_arc_beam(beam) for beam in treatment_beams):
        return TechniqueLabels.SINGLE_ARC if single else TechniqueLabels.MULTIPLE_ARC
    return TechniqueLabels.SINGLE_STATIC if single else TechniqueLabels.MULTIPLE_STATIC


def _as_float(value: Any) -> Optional[float]:
    """Coerce numeric host values to float so they render with fixed precision."""
    return None if value is None else float(value)


def _safe_get(getter: Callable[[], Any], fallback: str, description: str) -> Any:
    """Read a host attribute, substituting fallback if the host raises."""
    try:
        return getter()
    except Exception:
        logger.warning(f"Unable to read {description}; using '{fallback}'.", exc_info=True)
        return fallback


def _vector_node(vector: Vector3) -> ArrayNode:
    return ArrayNode([_as_float(vector.x), _as_float(vector.y), _as_float(vector.z)])


def _build_target_node(structure: StructureSnapshot) -> ObjectNode:
    node = ObjectNode()
    node.add("id", structure.structure_id)
    node.add("volume", _as_float(structure.volume))
    node.add("color", format_rgb_hex(structure.color))
    node.add("isTarget", is_target_structure(structure.structure_id))
    return node


def _build_structure_node(structure: StructureSnapshot, config: ExportConfig) -> ObjectNode:
    node = ObjectNode()
    node.add("id", structure.structure_id)
    node.add("volume", _as_float(structure.volume))
    node.add("color", format_rgb_hex(structure.color))
    node.add("dicomType", structure.dicom_type or config.unknown_sentinel)
    node.add("isTarget", is_target_structure(structure.structure_id))
    return node


def _get_frame_of_reference_uid(structure_set: StructureSetSnapshot, config: ExportConfig) -> str:
    """Frame of reference of the contoured image, or a sentinel if it cannot be resolved."""
    def _read() -> str:
        image = structure_set.image
        if image is None or not image.frame_of_reference_uid:
            return config.unknown_sentinel
        return image.frame_of_reference_uid

    return _safe_get(_read, config.not_available_sentinel, "frame of reference UID")


def _build_structure_set_data(structure_set: StructureSetSnapshot, config: ExportConfig) -> ObjectNode:
    """Structure set sub-document. Contour geometry is not exported."""
    node = ObjectNode()
    node.add("sopClassUid", str(RTStructureSetStorage))
    node.add("sopInstanceUid", structure_set.structure_set_id or config.unknown_sentinel)
    node.add("studyInstanceUid", config.unknown_sentinel)
    node.add("seriesInstanceUid", config.unknown_sentinel)
    node.add("frameOfReferenceUid", _get_frame_of_reference_uid(structure_set, config))

    structures = node.add_array("structures")
    for structure in structure_set.structures:
        struct_node = ObjectNode()
        struct_node.add("id", structure.structure_id)
        struct_node.add("dicomType", structure.dicom_type or config.unknown_sentinel)
        struct_node.add("color", format_rgba(structure.color))
        struct_node.add("volume", _as_float(structure.volume))
        struct_node.add("assignedHU", config.not_available_sentinel)
        struct_node.add("contours", ArrayNode())
        structures.append(struct_node)
    return node


def _add_structure_set_group(data: ObjectNode, structure_set: StructureSetSnapshot, config: ExportConfig) -> None:
    targets = [s for s in structure_set.structures if is_target_structure(s.structure_id)]
    logger.debug(f"Structure set '{structure_set.structure_set_id}': {len(structure_set.structures)} structures, {len(targets)} targets.")

    data.add_array("targets", [_build_target_node(t) for t in targets])
    data.add_array("structures", [_build_structure_node(s, config) for s in structure_set.structures])
    data.add("structureSetData", _build_structure_set_data(structure_set, config))


def _build_dose_data(dose: DoseSummary, config: ExportConfig) -> ObjectNode:
    """Dose sub-document with grid geometry and maximum only; voxel data is not exported."""
    node = ObjectNode()
    node.add("sopClassUid", str(RTDoseStorage))
    node.add("sopInstanceUid", dose.dose_id or config.unknown_sentinel)
    node.add("doseUnits", dose.unit or config.unknown_sentinel)
    node.add("doseType", DOSE_TYPE)
    node.add("doseComment", config.dose_comment)
    node.add("xSize", int(dose.x_size))
    node.add("ySize", int(dose.y_size))
    node.add("zSize", int(dose.z_size))
    node.add("xRes", _as_float(dose.x_res))
    node.add("yRes", _as_float(dose.y_res))
    node.add("zRes", _as_float(dose.z_res))
    node.add("origin", _vector_node(dose.origin))
    node.add("doseMax3D", _as_float(dose.max_dose))
    node.add("doseMax3DLocation", _vector_node(dose.max_dose_location))
    node.add("note", config.dose_note)
    return node


def _add_dose_group(data: ObjectNode, plan: PlanSnapshot, dose: DoseSummary, config: ExportConfig) -> None:
    if plan.total_dose is None:
        logger.warning(f"Plan '{plan.plan_id}' has a dose but no prescribed total dose.")
        data.add("prescriptionDose", None)
        data.add("doseUnit", config.unknown_sentinel)
    else:
        data.add("prescriptionDose", _as_float(plan.total_dose.dose))
        data.add("doseUnit", plan.total_dose.unit or config.unknown_sentinel)

    fractions = plan.number_of_fractions if plan.number_of_fractions is not None else 1
    data.add("fractions", int(fractions))
    data.add("doseData", _build_dose_data(dose, config))


def _build_beam_summary(beam: BeamSnapshot) -> ObjectNode:
    control_points = beam.control_points
    if control_points:
        first, last = control_points[0], control_points[-1]
        gantry_start = _as_float(first.gantry_angle)
        gantry_end = _as_float(last.gantry_angle)
        collimator_angle = _as_float(first.collimator_angle)
    else:
        logger.warning(f"Beam '{beam.beam_id}' has no control points; gantry and collimator angles unavailable.")
        gantry_start = gantry_end = collimator_angle = None

    node = ObjectNode()
    node.add("beamNumber", beam.beam_number)
    node.add("beamName", beam.beam_id)
    node.add("gantryStart", gantry_start)
    node.add("gantryEnd", gantry_end)
    node.add("collimatorAngle", collimator_angle)
    node.add("totalMU", _as_float(beam.meterset))
    node.add("doseRate", beam.dose_rate)
    node.add("energy", beam.energy_mode)
    return node


def build_document_tree(
    plan: PlanSnapshot,
    structure_set: Optional[StructureSetSnapshot] = FROM_PLAN,
    dose_summary: Optional[DoseSummary] = FROM_PLAN,
    config: Optional[ExportConfig] = None,
    export_time: Optional[datetime] = None,
) -> ObjectNode:
    """
    Assemble the export document tree for a plan.

    Args:
        plan: Plan snapshot. Its beams drive the aggregates and beam summary.
        structure_set: Structure set to export. Defaults to the plan's own; None omits the group.
        dose_summary: Dose summary to export. Defaults to the plan's own; None omits the group.
        config: Export settings. Defaults to ExportConfig().
        export_time: Timestamp recorded as the export time. Defaults to now.

    Returns:
        Root ObjectNode holding a single root-key object.
    """
    if plan is None or not hasattr(plan, "beams"):
        raise TypeError(f"Expected a plan snapshot with beams, got {type(plan).__name__}.")

    config = config or ExportConfig()
    if structure_set is FROM_PLAN:
        structure_set = plan.structure_set
    if dose_summary is FROM_PLAN:
        dose_summary = plan.dose

    treatment_beams = get_treatment_beams(plan.beams)

    root = ObjectNode()
    data = root.add_object(config.root_key)

    # Identification
    data.add("patientID", plan.patient_id)
    data.add("patientName", plan.patient_name)
    data.add("courseID", plan.course_id)
    data.add("planID", plan.plan_id)
    data.add("planCreationDate", _safe_get(
        lambda: format_datetime(plan.creation_datetime, config.datetime_format), "", "plan creation date"
    ))

    # Plan aggregates
    total_mu = calculate_total_mu(treatment_beams)
    technique = determine_technique(treatment_beams)
    logger.debug(f"Plan '{plan.plan_id}': {len(treatment_beams)} treatment beams, {total_mu:.1f} MU, technique '{technique}'.")
    data.add("totalPlanMU", total_mu)
    data.add("numberOfBeams", len(treatment_beams))
    data.add("technique", technique)

    if structure_set is not None and structure_set.structures is not None:
        _add_structure_set_group(data, structure_set, config)
    else:
        logger.info(f"No structure set for plan '{plan.plan_id}'; structure data omitted.")

    if dose_summary is not None:
        _add_dose_group(data, plan, dose_summary, config)
    else:
        logger.info(f"No dose for plan '{plan.plan_id}'; dose data omitted.")

    data.add_array("beamSummary", [_build_beam_summary(beam) for beam in treatment_beams])

    if treatment_beams:
        first_beam = treatment_beams[0]
        data.add("machineID", first_beam.treatment_unit_id or "")
        data.add("energy", first_beam.energy_mode or "")

    data.add("exportTimestamp", format_datetime(export_time or datetime.now(), config.datetime_format))
    return root


def build_document(
    plan: PlanSnapshot,
    structure_set: Optional[StructureSetSnapshot] = FROM_PLAN,
    dose_summary: Optional[DoseSummary] = FROM_PLAN,
    config: Optional[ExportConfig] = None,
    export_time: Optional[datetime] = None,
) -> str:
    """Build the export document for a plan and return it as JSON text."""
    config = config or ExportConfig()
    logger.info(f"Building SRS export document for plan '{getattr(plan, 'plan_id', None)}'.")
    root = build_document_tree(plan, structure_set, dose_summary, config, export_time)
    text = serialize_document(root, indent_size=config.indent_size, decimal_places=config.decimal_places)
    logger.info(f"Built SRS export document ({len(text)} characters).")
    return text
