"""
Input validation for caller-supplied church and actor data.

Every function either returns the normalized value or raises
``ValidationError`` naming the field.  Nothing here touches storage.
"""

from __future__ import annotations

import re
from typing import Any, Iterable

from church_kernel.domain.church import (
    Actor,
    ActorRole,
    ChurchDraft,
    ChurchStatus,
    HeritageClassification,
)
from church_kernel.exceptions import ValidationError

_IDENTIFIER_RE = re.compile(r"^[a-z0-9][a-z0-9_\-]{0,63}$")

# Fields a profile edit may touch.  Everything else is either immutable
# (id, diocese), workflow-owned (status) or bookkeeping (version, scores).
EDITABLE_FIELDS: frozenset[str] = frozenset({
    "name",
    "description",
    "classification",
    "founding_year",
    "architectural_style",
    "keywords",
    "heritage_notes",
})

PROTECTED_FIELDS: frozenset[str] = frozenset({
    "id",
    "diocese",
    "status",
    "version",
})

MAX_FOUNDING_YEAR = 2100


def validate_identifier(field: str, value: Any) -> str:
    """Parish, diocese and actor identifiers: lowercase slug, 1-64 chars."""
    if not isinstance(value, str):
        raise ValidationError(field, "must be a string")
    normalized = value.strip().lower()
    if not _IDENTIFIER_RE.match(normalized):
        raise ValidationError(field, f"'{value}' is not a valid identifier")
    return normalized


def validate_name(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("name", "must be a non-empty string")
    return value.strip()


def validate_founding_year(value: Any) -> int | None:
    if value is None:
        return None
    # bool is an int subclass; True is not a year
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("founding_year", "must be an integer")
    if value <= 0 or value > MAX_FOUNDING_YEAR:
        raise ValidationError("founding_year", f"{value} is out of range")
    return value


def parse_classification(value: Any) -> HeritageClassification:
    if value is None:
        return HeritageClassification.NONE
    if isinstance(value, HeritageClassification):
        return value
    if isinstance(value, str):
        text = value.strip()
        for member in HeritageClassification:
            if text.upper() == member.value.upper():
                return member
    raise ValidationError("classification", f"unknown classification {value!r}")


def parse_status(value: Any) -> ChurchStatus:
    if isinstance(value, ChurchStatus):
        return value
    try:
        return ChurchStatus(value)
    except ValueError:
        raise ValidationError("target_status", f"unknown status {value!r}") from None


def parse_role(value: Any) -> ActorRole:
    if isinstance(value, ActorRole):
        return value
    try:
        return ActorRole(value)
    except ValueError:
        raise ValidationError("role", f"unknown role {value!r}") from None


def normalize_keywords(value: Iterable[str] | None) -> tuple[str, ...]:
    """Lowercase, strip, drop blanks and duplicates, keep first-seen order."""
    if value is None:
        return ()
    if isinstance(value, str):
        raise ValidationError("keywords", "must be a list of strings")
    seen: list[str] = []
    for kw in value:
        if not isinstance(kw, str):
            raise ValidationError("keywords", f"{kw!r} is not a string")
        normalized = kw.strip().lower()
        if normalized and normalized not in seen:
            seen.append(normalized)
    return tuple(seen)


def optional_text(field: str, value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(field, "must be a string")
    return value.strip() or None


def validate_draft(draft: ChurchDraft) -> ChurchDraft:
    """Return a normalized copy of a creation request."""
    return ChurchDraft(
        id=validate_identifier("id", draft.id),
        name=validate_name(draft.name),
        diocese=validate_identifier("diocese", draft.diocese),
        classification=parse_classification(draft.classification),
        founding_year=validate_founding_year(draft.founding_year),
        architectural_style=optional_text("architectural_style", draft.architectural_style),
        description=optional_text("description", draft.description),
        keywords=normalize_keywords(draft.keywords),
        heritage_notes=optional_text("heritage_notes", draft.heritage_notes),
    )


def validate_profile_changes(changes: dict[str, Any]) -> dict[str, Any]:
    """Normalize a profile edit.

    Protected fields pass through untouched so the authorization gate can
    refuse them as boundary violations; unknown fields are malformed input.
    """
    if not isinstance(changes, dict) or not changes:
        raise ValidationError("changes", "must be a non-empty mapping")

    normalized: dict[str, Any] = {}
    for key, value in changes.items():
        if key in PROTECTED_FIELDS:
            normalized[key] = value
        elif key == "name":
            normalized[key] = validate_name(value)
        elif key == "classification":
            normalized[key] = parse_classification(value)
        elif key == "founding_year":
            normalized[key] = validate_founding_year(value)
        elif key == "keywords":
            normalized[key] = normalize_keywords(value)
        elif key in ("description", "architectural_style", "heritage_notes"):
            normalized[key] = optional_text(key, value)
        else:
            raise ValidationError(key, "is not an editable church field")
    return normalized


def validate_new_actor(actor: Actor) -> Actor:
    """Normalize an actor about to be provisioned."""
    role = parse_role(actor.role)
    uid = validate_identifier("uid", actor.uid)
    diocese = (
        validate_identifier("diocese", actor.diocese)
        if actor.diocese is not None
        else None
    )
    if role != ActorRole.PUBLIC and diocese is None:
        raise ValidationError("diocese", f"required for role {role.value}")
    parish = None
    if role == ActorRole.PARISH_SECRETARY:
        if actor.parish is None:
            raise ValidationError("parish", "required for parish_secretary")
        parish = validate_identifier("parish", actor.parish)
    return Actor(
        uid=uid,
        role=role,
        diocese=diocese,
        parish=parish,
        display_name=(actor.display_name or "").strip(),
        email=(actor.email or "").strip().lower(),
        is_active=True,
        is_deleted=False,
    )
