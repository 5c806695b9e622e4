"""Forms for the competition blueprint.

The forms read JSON request bodies through ``ApiForm.from_json``. CSRF is
disabled because the blueprint is a JSON API.
"""

from flask import request
from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict
from wtforms import BooleanField, FloatField, IntegerField, StringField
from wtforms import ValidationError as FieldError
from wtforms.validators import AnyOf, DataRequired, NumberRange, Optional

from rallybox.core.constants import (
    COMPETITION_MODES,
    PLAYOFF_SCOPE_BOX,
    PLAYOFF_SCOPE_OVERALL,
    WITHDRAWAL_CANCEL,
    WITHDRAWAL_WALKOVER,
)
from rallybox.errors import ValidationError

SETTINGS_FIELDS = (
    "min_participants",
    "max_participants",
    "box_size",
    "regular_rounds",
    "playoff_qualifiers",
    "playoff_scope",
    "withdrawal_policy",
    "promotion_count",
)


def number_required(form, field):
    """Like InputRequired, but accepts zero."""
    if field.data is None and not field.process_errors:
        raise FieldError("This field is required.")


def whole_number(form, field):
    """Reject submitted values that are not JSON integers, such as 11.9 or true."""
    if not field.raw_data:
        return
    value = field.raw_data[0]
    if isinstance(value, bool) or not isinstance(value, int):
        raise FieldError("Must be a whole number.")


class ApiForm(FlaskForm):
    """Base form for JSON payloads."""

    class Meta:
        csrf = False

    @classmethod
    def from_json(cls):
        """Build the form from the JSON body, ignoring null values."""
        payload = request.get_json(silent=True) or {}
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object.")
        return cls(formdata=MultiDict({k: v for k, v in payload.items() if v is not None}))

    def validate_or_raise(self):
        """Validate the submitted payload, raising ValidationError on failure."""
        if not self.validate_on_submit():
            for name, errors in self.errors.items():
                raise ValidationError(f"{name}: {errors[0]}")
        return self

    def submitted_fields(self):
        """Values of the fields present in the payload."""
        return {
            name: field.data
            for name, field in self._fields.items()
            if field.raw_data
        }


class SettingsForm(ApiForm):
    """Form for competition settings."""

    min_participants = IntegerField(
        "Minimum Participants", validators=[Optional(), whole_number, NumberRange(min=2)]
    )
    max_participants = IntegerField(
        "Maximum Participants", validators=[Optional(), whole_number, NumberRange(min=2)]
    )
    box_size = IntegerField(
        "Box Size", validators=[Optional(), whole_number, NumberRange(min=2)]
    )
    regular_rounds = IntegerField(
        "Regular Rounds", validators=[Optional(), whole_number, NumberRange(min=0)]
    )
    playoff_qualifiers = IntegerField(
        "Playoff Qualifiers", validators=[Optional(), whole_number, NumberRange(min=0)]
    )
    playoff_scope = StringField(
        "Playoff Scope",
        validators=[Optional(), AnyOf([PLAYOFF_SCOPE_BOX, PLAYOFF_SCOPE_OVERALL])],
    )
    withdrawal_policy = StringField(
        "Withdrawal Policy",
        validators=[Optional(), AnyOf([WITHDRAWAL_CANCEL, WITHDRAWAL_WALKOVER])],
    )
    promotion_count = IntegerField(
        "Promotion Count", validators=[Optional(), whole_number, NumberRange(min=0)]
    )


class CompetitionForm(SettingsForm):
    """Form for creating a competition."""

    name = StringField("Competition Name", validators=[DataRequired()])
    mode = StringField(
        "Competition Mode", validators=[DataRequired(), AnyOf(list(COMPETITION_MODES))]
    )
    open_registration = BooleanField("Open Registration", default=True)

    def settings_overrides(self):
        """Settings given in the payload, ready for CompetitionSettings.for_mode."""
        fields = self.submitted_fields()
        return {name: fields[name] for name in SETTINGS_FIELDS if name in fields}


class JoinForm(ApiForm):
    """Form for entering a competition."""

    display_name = StringField("Display Name", validators=[DataRequired()])
    participant_id = StringField("Participant ID", validators=[Optional()])
    account_ref = StringField("Account", validators=[Optional()])
    rating = FloatField("Rating", validators=[Optional()])


class ResultForm(ApiForm):
    """Form for reporting a match score."""

    score1 = IntegerField("Score 1", validators=[number_required, whole_number])
    score2 = IntegerField("Score 2", validators=[number_required, whole_number])


class WalkoverForm(ApiForm):
    """Form for awarding a walkover."""

    winner_id = StringField("Winner", validators=[DataRequired()])


class GenerateRoundForm(ApiForm):
    """Form for generating a specific round."""

    round_number = IntegerField(
        "Round Number", validators=[Optional(), whole_number, NumberRange(min=1)]
    )


class AdvanceRoundForm(ApiForm):
    """Form carrying the round the caller believes is current."""

    expected_round = IntegerField(
        "Expected Round", validators=[Optional(), whole_number, NumberRange(min=1)]
    )


class NextSeasonForm(ApiForm):
    """Form for starting the next season of a league."""

    name = StringField("Season Name", validators=[Optional()])
