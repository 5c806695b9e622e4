"""Routes for the competition blueprint."""

from __future__ import annotations

from typing import Any

from flask import current_app, jsonify, request

from rallybox.core.constants import STORE_EXTENSION
from rallybox.core.types import APIResponse
from rallybox.models import CompetitionSettings

from . import bp
from .forms import (
    AdvanceRoundForm,
    CompetitionForm,
    GenerateRoundForm,
    JoinForm,
    NextSeasonForm,
    ResultForm,
    SettingsForm,
    WalkoverForm,
)
from .services import CompetitionService


def get_service() -> CompetitionService:
    """Build a service bound to the application's competition store."""
    return CompetitionService(
        current_app.extensions[STORE_EXTENSION],
        timeout=current_app.config["STORE_TIMEOUT_SECONDS"],
    )


def _respond(data: Any, message: str = "OK", status: int = 200) -> Any:
    body: APIResponse = {"success": True, "message": message, "data": data}
    return jsonify(body), status


def _competition_view(competition_id: str) -> dict[str, Any]:
    state = get_service().get_state(competition_id)
    data = state.competition.to_dict()
    data["participants"] = [
        p.to_dict()
        for p in sorted(state.participants.values(), key=lambda p: str(p.enrolled_at))
    ]
    return data


@bp.route("", methods=["POST"])
def create_competition() -> Any:
    """Create a new competition."""
    form = CompetitionForm.from_json().validate_or_raise()
    settings = CompetitionSettings.for_mode(form.mode.data, **form.settings_overrides())
    competition = get_service().create_competition(
        form.name.data,
        form.mode.data,
        settings=settings,
        open_registration=form.submitted_fields().get("open_registration", True),
    )
    current_app.logger.info(f"Competition {competition.id} created: {competition.name}")
    return _respond(competition.to_dict(), "Competition created.", 201)


@bp.route("/<string:competition_id>", methods=["GET"])
def view_competition(competition_id: str) -> Any:
    """View a competition and its participants."""
    return _respond(_competition_view(competition_id))


@bp.route("/<string:competition_id>/open", methods=["POST"])
def open_registration(competition_id: str) -> Any:
    """Open a competition for entries."""
    competition = get_service().open_registration(competition_id)
    return _respond(competition.to_dict(), "Registration is open.")


@bp.route("/<string:competition_id>/settings", methods=["POST"])
def update_settings(competition_id: str) -> Any:
    """Change settings before the competition starts."""
    form = SettingsForm.from_json().validate_or_raise()
    competition = get_service().update_settings(competition_id, **form.submitted_fields())
    return _respond(competition.to_dict(), "Settings updated.")


@bp.route("/<string:competition_id>/participants", methods=["POST"])
def join(competition_id: str) -> Any:
    """Enter a participant."""
    form = JoinForm.from_json().validate_or_raise()
    payload = request.get_json(silent=True) or {}
    members = payload.get("members") or []
    participant = get_service().join(
        competition_id,
        form.display_name.data,
        participant_id=form.participant_id.data or None,
        account_ref=form.account_ref.data or None,
        members=[str(m) for m in members] if isinstance(members, list) else [],
        rating=form.rating.data,
    )
    return _respond(participant.to_dict(), "Joined competition.", 201)


@bp.route(
    "/<string:competition_id>/participants/<string:participant_id>/withdraw",
    methods=["POST"],
)
def withdraw(competition_id: str, participant_id: str) -> Any:
    """Withdraw a participant."""
    participant = get_service().withdraw(competition_id, participant_id)
    current_app.logger.info(
        f"Participant {participant_id} withdrew from competition {competition_id}"
    )
    return _respond(participant.to_dict(), "Participant withdrawn.")


@bp.route("/<string:competition_id>/start", methods=["POST"])
def start(competition_id: str) -> Any:
    """Start the regular stage."""
    return _respond(get_service().start(competition_id), "Competition started.")


@bp.route("/<string:competition_id>/rounds", methods=["POST"])
def generate_round(competition_id: str) -> Any:
    """Generate the next round without changing stage."""
    form = GenerateRoundForm.from_json().validate_or_raise()
    rnd = get_service().generate_round(competition_id, form.round_number.data)
    return _respond(rnd.to_dict(), f"Round {rnd.number} generated.", 201)


@bp.route("/<string:competition_id>/advance", methods=["POST"])
def advance_round(competition_id: str) -> Any:
    """Close the current round and move on."""
    form = AdvanceRoundForm.from_json().validate_or_raise()
    summary = get_service().advance_round(competition_id, form.expected_round.data)
    return _respond(summary, "Round advanced.")


@bp.route("/<string:competition_id>/rounds/<int:round_number>", methods=["GET"])
def view_round(competition_id: str, round_number: int) -> Any:
    """View a round and its matches."""
    rnd, matches = get_service().get_round(competition_id, round_number)
    data = rnd.to_dict()
    data["matches"] = [m.to_dict() for m in matches]
    return _respond(data)


@bp.route(
    "/<string:competition_id>/rounds/<int:round_number>/complete", methods=["GET"]
)
def check_round_completion(competition_id: str, round_number: int) -> Any:
    """Report whether every match of a round is resolved."""
    complete = get_service().check_round_completion(competition_id, round_number)
    return _respond({"round": round_number, "complete": complete})


@bp.route("/<string:competition_id>/playoffs", methods=["POST"])
def start_playoffs(competition_id: str) -> Any:
    """Seed the playoff bracket."""
    return _respond(get_service().start_playoffs(competition_id), "Playoffs started.")


@bp.route("/<string:competition_id>/complete", methods=["POST"])
def complete(competition_id: str) -> Any:
    """Finish the competition."""
    competition = get_service().complete(competition_id)
    return _respond(competition.to_dict(), "Competition completed.")


@bp.route("/<string:competition_id>/cancel", methods=["POST"])
def cancel(competition_id: str) -> Any:
    """Cancel the competition."""
    competition = get_service().cancel(competition_id)
    return _respond(competition.to_dict(), "Competition cancelled.")


@bp.route("/<string:competition_id>/boxes", methods=["GET"])
def box_structure(competition_id: str) -> Any:
    """List the boxes and their members."""
    return _respond({"boxes": get_service().get_box_structure(competition_id)})


@bp.route("/<string:competition_id>/boxes/<string:box_id>/standings", methods=["GET"])
def box_standings(competition_id: str, box_id: str) -> Any:
    """Ranked standings of one box."""
    standings = get_service().get_box_standings(competition_id, box_id)
    return _respond({"box_id": box_id, "standings": [s.to_dict() for s in standings]})


@bp.route("/<string:competition_id>/bracket", methods=["GET"])
def bracket(competition_id: str) -> Any:
    """The playoff bracket, round by round."""
    return _respond({"rounds": get_service().get_bracket(competition_id)})


@bp.route("/<string:competition_id>/matches/<string:match_id>/start", methods=["POST"])
def start_match(competition_id: str, match_id: str) -> Any:
    """Mark a match as in progress."""
    match = get_service().start_match(competition_id, match_id)
    return _respond(match.to_dict(), "Match started.")


@bp.route("/<string:competition_id>/matches/<string:match_id>/result", methods=["POST"])
def record_result(competition_id: str, match_id: str) -> Any:
    """Record a match score."""
    form = ResultForm.from_json().validate_or_raise()
    match = get_service().record_result(
        competition_id, match_id, form.score1.data, form.score2.data
    )
    return _respond(match.to_dict(), "Result recorded.")


@bp.route(
    "/<string:competition_id>/matches/<string:match_id>/walkover", methods=["POST"]
)
def record_walkover(competition_id: str, match_id: str) -> Any:
    """Award a match without play."""
    form = WalkoverForm.from_json().validate_or_raise()
    match = get_service().record_walkover(competition_id, match_id, form.winner_id.data)
    return _respond(match.to_dict(), "Walkover recorded.")


@bp.route("/<string:competition_id>/promotions", methods=["GET"])
def promotions(competition_id: str) -> Any:
    """Promotion and relegation moves for the next season."""
    return _respond({"moves": get_service().plan_promotions(competition_id)})


@bp.route("/<string:competition_id>/next-season", methods=["POST"])
def next_season(competition_id: str) -> Any:
    """Create the next season of a league."""
    form = NextSeasonForm.from_json().validate_or_raise()
    competition = get_service().create_next_season(
        competition_id, form.name.data or None
    )
    return _respond(competition.to_dict(), "Next season created.", 201)
