# backend/maintdb/apps/faults/matching.py
#
# Which maintenance personnel may take a fault, based on its category.
# Pure functions; no database access.

from __future__ import annotations

from typing import Iterable, List, Optional, Tuple, TypeVar, Union

from maintdb.apps.accounts.models import Specialization

from .models import FaultCategoryEnum

S = Specialization

# Category-specific skills first, GENERAL always last.
SPECIALIZATIONS_BY_CATEGORY = {
    FaultCategoryEnum.MECHANICAL: (S.MECHANICAL, S.GENERAL),
    FaultCategoryEnum.ELECTRIC: (S.ELECTRIC, S.GENERAL),
    FaultCategoryEnum.IT: (S.IT, S.GENERAL),
    FaultCategoryEnum.PNEUMATIC: (S.PNEUMATIC, S.MECHANICAL, S.GENERAL),
    FaultCategoryEnum.HYDRAULIC: (S.HYDRAULIC, S.MECHANICAL, S.GENERAL),
    FaultCategoryEnum.SOFTWARE: (S.SOFTWARE, S.IT, S.GENERAL),
    FaultCategoryEnum.OTHER: (S.GENERAL,),
}

_FALLBACK: Tuple[Specialization, ...] = (S.GENERAL,)

P = TypeVar("P")


def _coerce_category(category: Union[FaultCategoryEnum, str, None]) -> Optional[FaultCategoryEnum]:
    if isinstance(category, FaultCategoryEnum):
        return category
    try:
        return FaultCategoryEnum(category)
    except ValueError:
        return None


def _coerce_specialization(value: Union[Specialization, str, None]) -> Optional[Specialization]:
    if value is None or value == "":
        return S.GENERAL
    if isinstance(value, Specialization):
        return value
    try:
        return Specialization(value)
    except ValueError:
        return None


def required_specializations(
    category: Union[FaultCategoryEnum, str, None],
) -> Tuple[Specialization, ...]:
    """
    Ordered specializations accepted for a fault category.

    Unknown or missing categories never raise; they fall back to GENERAL.
    """
    coerced = _coerce_category(category)
    if coerced is None:
        return _FALLBACK
    return SPECIALIZATIONS_BY_CATEGORY.get(coerced, _FALLBACK)


def specialization_of(person: object) -> Optional[Specialization]:
    """Specialization of a roster entry (ORM user, schema or dict), GENERAL when unset."""
    if isinstance(person, dict):
        raw = person.get("specialization")
    else:
        raw = getattr(person, "specialization", None)
    return _coerce_specialization(raw)


def is_eligible(category: Union[FaultCategoryEnum, str, None], person: object) -> bool:
    return specialization_of(person) in required_specializations(category)


def eligible_personnel(
    category: Union[FaultCategoryEnum, str, None],
    roster: Iterable[P],
) -> List[P]:
    """
    Members of `roster` whose specialization is accepted for `category`,
    in roster order. An empty list is a normal answer.
    """
    required = required_specializations(category)
    return [person for person in roster if specialization_of(person) in required]
