"""
schemas/group_schema.py — Marshmallow schemas for group and participant endpoints.

Validation responsibility:
  - This file: field types, string lengths, non-empty checks (including trim).
  - services/group_service.py:
      - GROUP_NOT_FOUND / PARTICIPANT_NOT_FOUND (requires DB lookup)
      - GROUP_FULL (participant count requires DB lookup)

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate


def _validate_non_empty_after_trim(value: str) -> None:
    """
    Raises ValidationError if the string is blank or contains only whitespace.
    Mirrors the DB CHECK(LENGTH(TRIM(...)) > 0) constraint at the API layer.
    """
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


def _group_name_field(**kwargs) -> fields.Str:
    # VARCHAR(100) NOT NULL CHECK(LENGTH(TRIM(name)) > 0)
    return fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=1,
                max=100,
                error="Group name must be between 1 and 100 characters.",
            ),
            _validate_non_empty_after_trim,
        ],
        **kwargs,
    )


def _participant_name_field(**kwargs) -> fields.Str:
    # VARCHAR(50) NOT NULL CHECK(LENGTH(TRIM(name)) > 0)
    return fields.Str(
        validate=[
            validate.Length(
                min=1,
                max=50,
                error="Participant name must be between 1 and 50 characters.",
            ),
            _validate_non_empty_after_trim,
        ],
        **kwargs,
    )


class CreateGroupSchema(Schema):
    """
    POST /groups

    `participants` is an optional list of names to seed the roster with.
    The per-group limit is checked in group_service.create_group().
    """

    name = _group_name_field()

    participants = fields.List(
        _participant_name_field(),
        load_default=list,
    )


class RenameGroupSchema(Schema):
    """PATCH /groups/:id"""

    name = _group_name_field()


class ParticipantSchema(Schema):
    """POST /groups/:id/participants and PATCH /groups/:id/participants/:pid"""

    name = _participant_name_field(required=True)
