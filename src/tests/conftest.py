"""
Test fixtures.
"""
from __future__ import annotations


from datetime import datetime


import pytest


from srs_export.utils.plan_snapshot_object import (
    BeamSnapshot, ControlPoint, DoseSummary, DoseValue, ImageReference, MLCPlanType,
    PlanSnapshot, StructureSetSnapshot, StructureSnapshot, Vector3
)


@pytest.fixture
def export_time():
    """Fixed export timestamp."""
    return datetime(2024, 3, 5, 14, 30, 15)


@pytest.fixture
def arc_beam():
    """VMAT arc sweeping 181 -> 179 degrees."""
    return BeamSnapshot(
        beam_number=1,
        beam_id="ARC1",
        control_points=(ControlPoint(181.0, 30.0), ControlPoint(270.0, 30.0), ControlPoint(179.0, 30.0)),
        meterset=1234.5,
        dose_rate=1400,
        energy_mode="6X-FFF",
        mlc_plan_type=MLCPlanType.VMAT,
        treatment_unit_id="TrueBeam1",
    )


@pytest.fixture
def setup_beam():
    """Setup field; must never count towards plan aggregates."""
    return BeamSnapshot(
        beam_number=99,
        beam_id="CBCT",
        control_points=(ControlPoint(0.0, 0.0), ControlPoint(0.0, 0.0)),
        meterset=10.0,
        dose_rate=100,
        energy_mode="6X",
        mlc_plan_type=MLCPlanType.STATIC,
        treatment_unit_id="SetupUnit",
        is_setup_field=True,
    )


@pytest.fixture
def structure_set():
    """Structure set with two targets and two organs at risk."""
    return StructureSetSnapshot(
        structure_set_id="SRS_Brain",
        structures=(
            StructureSnapshot("PTV_60", 2.5, (255, 0, 0), "PTV"),
            StructureSnapshot("Brainstem", 25.125, (0, 128, 255), "ORGAN"),
            StructureSnapshot("ctv_boost", 1.0, (255, 255, 0), "CTV"),
            StructureSnapshot("Body", 1500.0, (0, 255, 0), None),
        ),
        image=ImageReference("CT_1", "1.2.246.352.71.4.1"),
    )


@pytest.fixture
def dose_summary():
    """Dose grid summary."""
    return DoseSummary(
        dose_id="1.2.246.352.71.7.1",
        x_size=128,
        y_size=128,
        z_size=64,
        x_res=1.25,
        y_res=1.25,
        z_res=2.0,
        origin=Vector3(-80.0, -80.0, -64.0),
        unit="Gy",
        max_dose=21.3456789,
        max_dose_location=Vector3(1.5, -2.25, 10.0),
    )


@pytest.fixture
def plan(arc_beam, setup_beam, structure_set, dose_summary):
    """Complete single-arc plan with a setup field, structure set and dose."""
    return PlanSnapshot(
        patient_id="SRS001",
        patient_name="Doe, Jane",
        course_id="C1",
        plan_id="SRS_3Mets",
        creation_datetime=datetime(2024, 3, 1, 9, 5, 7),
        total_dose=DoseValue(20.0, "Gy"),
        number_of_fractions=1,
        beams=(setup_beam, arc_beam),
        structure_set=structure_set,
        dose=dose_summary,
    )


@pytest.fixture
def bare_plan(arc_beam):
    """Plan without structure set, dose, creation date or fraction count."""
    return PlanSnapshot(
        patient_id="SRS002",
        patient_name="Roe, Richard",
        course_id="C2",
        plan_id="Bare",
        beams=(arc_beam,),
    )
