"""
Tests for the injected collaborators: resume scoring, portal tokens and
notifiers.
"""

import pytest
from hypothesis import given, strategies as st

from models.records import JobOpening
from utils.notifications import TEMPLATE_KEYS, LoggingNotifier, NotificationError
from utils.portal_tokens import TOKEN_LENGTH, PortalTokenSigner, phone_last_digits
from utils.resume_scoring import KeywordScorer, profile_strength, quick_score


class TestQuickScore:
    def test_empty_resume_gets_base_score(self):
        assert quick_score("", None) == 50

    def test_partial_skill_match(self):
        assert quick_score("python developer with 5 years experience", "python, go") == 73

    def test_skill_matching_is_case_insensitive(self):
        assert quick_score("PYTHON and SQL", "python, sql") == 80

    def test_experience_bonus_is_capped(self):
        text = "years experience worked developed managed"
        assert quick_score(text, "") == 70

    @given(text=st.text(max_size=200), skills=st.one_of(st.none(), st.text(max_size=60)))
    def test_score_stays_in_range(self, text, skills):
        assert 50 <= quick_score(text, skills) <= 100

    @pytest.mark.parametrize(
        "score,label",
        [(95, "Exceptional"), (90, "Exceptional"), (85, "Strong"), (72, "Good"), (60, "Fair"), (59.9, "Weak")],
    )
    def test_profile_strength_bands(self, score, label):
        assert profile_strength(score) == label

    def test_keyword_scorer(self):
        job = JobOpening(id=1, title="Backend", skills="python, sql")
        result = KeywordScorer().score("python and sql", job)
        assert result == {"score": 80, "method": "keyword-overlap"}


class TestPortalTokens:
    def test_token_is_deterministic_and_case_insensitive(self):
        signer = PortalTokenSigner("secret")
        token = signer.issue("Asha@Example.com", 7)

        assert len(token) == TOKEN_LENGTH
        assert token == signer.issue("asha@example.com", 7)
        assert signer.verify(token, "ASHA@example.com", 7)

    def test_token_is_bound_to_candidate_and_secret(self):
        signer = PortalTokenSigner("secret")
        token = signer.issue("asha@example.com", 7)

        assert not signer.verify(token, "asha@example.com", 8)
        assert not signer.verify(token, "other@example.com", 7)
        assert not PortalTokenSigner("other-secret").verify(token, "asha@example.com", 7)

    @pytest.mark.parametrize("token", ["", "abc", None, 12345])
    def test_malformed_tokens_fail(self, token):
        assert not PortalTokenSigner("secret").verify(token, "asha@example.com", 7)

    def test_empty_secret_refused(self):
        with pytest.raises(ValueError):
            PortalTokenSigner("")

    @pytest.mark.parametrize(
        "phone,expected",
        [("+91 98450 12345", "12345"), ("(555) 010-9999", "09999"), ("1234", ""), ("", "")],
    )
    def test_phone_last_digits(self, phone, expected):
        assert phone_last_digits(phone) == expected


class TestLoggingNotifier:
    @pytest.mark.parametrize("template_key", sorted(TEMPLATE_KEYS))
    def test_known_templates(self, template_key, caplog):
        with caplog.at_level("INFO"):
            LoggingNotifier().send(template_key, {"to": "asha@example.com", "application_id": 3})
        assert template_key in caplog.text

    def test_unknown_template(self):
        with pytest.raises(NotificationError):
            LoggingNotifier().send("birthday", {})
