"""
routes/groups.py — Group and participant route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

Endpoints (base url_prefix=/api/v1/groups):
  POST   /groups                              → 201  create group
  GET    /groups                              → 200  list groups
  GET    /groups/:id                          → 200  get group + participants
  PATCH  /groups/:id                          → 200  rename group
  DELETE /groups/:id                          → 200  delete group (cascade)
  POST   /groups/:id/participants             → 201  add participant
  PATCH  /groups/:id/participants/:pid        → 200  rename participant
  DELETE /groups/:id/participants/:pid        → 200  remove participant (cascade)
"""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from splitmint.app.extensions import db
from splitmint.app.schemas.group_schema import (
    CreateGroupSchema,
    ParticipantSchema,
    RenameGroupSchema,
)
from splitmint.app.services import group_service

groups_bp = Blueprint("groups", __name__)


@groups_bp.route("/", methods=["POST"])
def create_group():
    """POST /groups — Create a new group, optionally with its first participants."""
    data = CreateGroupSchema().load(request.get_json(force=True) or {})
    result = group_service.create_group(
        name=data["name"],
        session=db.session,
        participant_names=data["participants"],
        max_participants=current_app.config["MAX_PARTICIPANTS_PER_GROUP"],
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@groups_bp.route("/", methods=["GET"])
def list_groups():
    """GET /groups — List all groups with participant count and total spent."""
    result = group_service.list_groups(session=db.session)
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>", methods=["GET"])
def get_group(group_id: int):
    """GET /groups/:id — Get group details with participant list."""
    result = group_service.get_group(group_id=group_id, session=db.session)
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>", methods=["PATCH"])
def rename_group(group_id: int):
    """PATCH /groups/:id — Rename a group."""
    data = RenameGroupSchema().load(request.get_json(force=True) or {})
    result = group_service.rename_group(
        group_id=group_id,
        name=data["name"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>", methods=["DELETE"])
def delete_group(group_id: int):
    """DELETE /groups/:id — Delete a group with its participants and expenses."""
    removed = group_service.delete_group(group_id=group_id, session=db.session)
    db.session.commit()
    return jsonify({
        "data": {
            "deleted": True,
            "group_id": group_id,
            **removed,
        },
        "warnings": [],
    }), 200


@groups_bp.route("/<int:group_id>/participants", methods=["POST"])
def add_participant(group_id: int):
    """POST /groups/:id/participants — Add a participant, up to the group limit."""
    data = ParticipantSchema().load(request.get_json(force=True) or {})
    result = group_service.add_participant(
        group_id=group_id,
        name=data["name"],
        session=db.session,
        max_participants=current_app.config["MAX_PARTICIPANTS_PER_GROUP"],
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@groups_bp.route("/<int:group_id>/participants/<int:participant_id>", methods=["PATCH"])
def rename_participant(group_id: int, participant_id: int):
    """PATCH /groups/:id/participants/:pid — Rename a participant."""
    data = ParticipantSchema().load(request.get_json(force=True) or {})
    result = group_service.rename_participant(
        group_id=group_id,
        participant_id=participant_id,
        name=data["name"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>/participants/<int:participant_id>", methods=["DELETE"])
def remove_participant(group_id: int, participant_id: int):
    """
    DELETE /groups/:id/participants/:pid — Remove a participant.

    Expenses they paid are deleted and their shares are dropped from the
    rest; the response reports how many expenses were affected.
    """
    summary = group_service.remove_participant(
        group_id=group_id,
        participant_id=participant_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({
        "data": {
            "removed": True,
            "group_id": group_id,
            "participant_id": participant_id,
            **summary,
        },
        "warnings": [],
    }), 200
