"""
Tests for the Stage Catalog projections.

The status projection and the public tables must be total over Stage and
pure (same input, same output).
"""

import pytest
from hypothesis import given, strategies as st

from models.stage_catalog import (
    ABSORBING_STAGES,
    OFFER_ACCEPTED_ACTION,
    PUBLIC_STAGE_DESCRIPTIONS,
    PUBLIC_STAGE_LABELS,
    PUBLIC_STAGE_STATUSES,
    STAGE_LABELS,
    STAGE_ORDER,
    TERMINAL_OFFER_STATUSES,
    is_absorbing,
    is_terminal_offer,
    project_status,
    public_stage_description,
    public_stage_label,
    public_stage_status,
)
from models.status import ApplicationStatus, OfferStatus, PublicStatus, Stage

stages = st.sampled_from(list(Stage))


class TestProjectionTables:
    @pytest.mark.parametrize(
        "table", [STAGE_LABELS, PUBLIC_STAGE_LABELS, PUBLIC_STAGE_STATUSES, PUBLIC_STAGE_DESCRIPTIONS]
    )
    def test_tables_cover_every_stage(self, table):
        assert set(table) == set(Stage)

    @given(stage=stages)
    def test_public_projection_is_total_and_pure(self, stage):
        label = public_stage_label(stage)
        status = public_stage_status(stage)
        description = public_stage_description(stage)

        assert isinstance(label, str) and label
        assert isinstance(status, PublicStatus)
        assert isinstance(description, str) and description
        assert (label, status, description) == (
            public_stage_label(stage),
            public_stage_status(stage),
            public_stage_description(stage),
        )

    @given(stage=stages)
    def test_projection_accepts_plain_strings(self, stage):
        assert public_stage_label(stage.value) == public_stage_label(stage)

    def test_public_labels_hide_internal_wording(self):
        assert public_stage_label(Stage.REJECTED) == "Not Selected"
        assert public_stage_label(Stage.ASSIGNMENT_SENT) == "Assessment Sent"
        assert public_stage_status(Stage.OFFER_SENT) == PublicStatus.ACTION_REQUIRED


class TestProjectStatus:
    @pytest.mark.parametrize(
        "stage,expected",
        [
            (Stage.HIRED, ApplicationStatus.HIRED),
            (Stage.REJECTED, ApplicationStatus.REJECTED),
            (Stage.WITHDRAWN, ApplicationStatus.WITHDRAWN),
            (Stage.OFFER_SENT, ApplicationStatus.OFFERED),
            (Stage.OFFER_ACCEPTED, ApplicationStatus.OFFERED),
            (Stage.INTERVIEW, ApplicationStatus.INTERVIEWED),
            (Stage.SHORTLISTING, ApplicationStatus.UNDER_REVIEW),
            (Stage.SCREENING, ApplicationStatus.UNDER_REVIEW),
            (Stage.ASSIGNMENT_SENT, ApplicationStatus.UNDER_REVIEW),
            (Stage.ASSIGNMENT_SUBMITTED, ApplicationStatus.UNDER_REVIEW),
        ],
    )
    def test_stage_to_status(self, stage, expected):
        assert project_status(stage) == expected

    def test_accepting_the_offer_projects_to_hired(self):
        assert project_status(Stage.OFFER_ACCEPTED, OFFER_ACCEPTED_ACTION) == ApplicationStatus.HIRED

    def test_action_only_matters_for_offer_accepted(self):
        assert project_status(Stage.INTERVIEW, OFFER_ACCEPTED_ACTION) == ApplicationStatus.INTERVIEWED

    @given(stage=stages, action=st.one_of(st.none(), st.text(max_size=20)))
    def test_projection_is_total(self, stage, action):
        assert isinstance(project_status(stage, action), ApplicationStatus)


class TestAbsorbingAndTerminal:
    def test_catalog_order(self):
        assert STAGE_ORDER[0] == Stage.SHORTLISTING
        assert STAGE_ORDER.index(Stage.INTERVIEW) < STAGE_ORDER.index(Stage.OFFER_SENT)

    def test_absorbing_stages(self):
        assert ABSORBING_STAGES == {Stage.HIRED, Stage.REJECTED, Stage.WITHDRAWN}
        assert is_absorbing("hired")
        assert not is_absorbing(Stage.OFFER_ACCEPTED)

    def test_terminal_offer_statuses(self):
        assert TERMINAL_OFFER_STATUSES == {
            OfferStatus.ACCEPTED,
            OfferStatus.REJECTED,
            OfferStatus.DECLINED,
            OfferStatus.EXPIRED,
            OfferStatus.WITHDRAWN,
        }
        assert is_terminal_offer("declined")
        assert not is_terminal_offer(OfferStatus.NEGOTIATING)
