from __future__ import annotations

from types import SimpleNamespace

from maintdb.apps.accounts.models import Specialization
from maintdb.apps.faults.matching import (
    eligible_personnel,
    is_eligible,
    required_specializations,
    specialization_of,
)
from maintdb.apps.faults.models import FaultCategoryEnum


def test_hydraulic_accepts_hydraulic_mechanical_general_in_order():
    assert required_specializations(FaultCategoryEnum.HYDRAULIC) == (
        Specialization.HYDRAULIC,
        Specialization.MECHANICAL,
        Specialization.GENERAL,
    )


def test_every_category_ends_with_general():
    for category in FaultCategoryEnum:
        required = required_specializations(category)
        assert required[-1] == Specialization.GENERAL
        assert len(set(required)) == len(required)


def test_software_falls_back_to_it():
    assert required_specializations("Software") == (
        Specialization.SOFTWARE,
        Specialization.IT,
        Specialization.GENERAL,
    )


def test_unknown_or_missing_category_means_general_only():
    assert required_specializations("Welding") == (Specialization.GENERAL,)
    assert required_specializations(None) == (Specialization.GENERAL,)
    assert required_specializations(FaultCategoryEnum.OTHER) == (Specialization.GENERAL,)


def test_hydraulic_roster_keeps_only_mechanical():
    roster = [{"specialization": "Mechanical"}, {"specialization": "Electric"}]
    assert eligible_personnel("Hydraulic", roster) == [{"specialization": "Mechanical"}]


def test_filter_preserves_roster_order():
    roster = [
        SimpleNamespace(name="gen", specialization=Specialization.GENERAL),
        SimpleNamespace(name="elec", specialization=Specialization.ELECTRIC),
        SimpleNamespace(name="mech", specialization=Specialization.MECHANICAL),
    ]
    names = [p.name for p in eligible_personnel(FaultCategoryEnum.PNEUMATIC, roster)]
    assert names == ["gen", "mech"]


def test_empty_result_is_not_an_error():
    roster = [{"specialization": "IT"}]
    assert eligible_personnel(FaultCategoryEnum.MECHANICAL, roster) == []
    assert eligible_personnel(FaultCategoryEnum.MECHANICAL, []) == []


def test_missing_specialization_counts_as_general():
    assert specialization_of({}) == Specialization.GENERAL
    assert specialization_of({"specialization": ""}) == Specialization.GENERAL
    assert is_eligible(FaultCategoryEnum.ELECTRIC, {"specialization": None})


def test_unrecognised_specialization_is_never_eligible():
    person = {"specialization": "Plumbing"}
    assert specialization_of(person) is None
    for category in FaultCategoryEnum:
        assert not is_eligible(category, person)


def test_electric_is_not_eligible_for_mechanical():
    assert not is_eligible(FaultCategoryEnum.MECHANICAL, {"specialization": "Electric"})
