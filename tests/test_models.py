"""Tests for the data model parsing and invariants."""

from datetime import datetime, timezone

import pytest

from errors import TransportError
from models import AnalysisResult, Article, HistoryItem, Session, TrialUsage, UserProfile


def test_session_without_user_id_is_anonymous():
    assert Session.anonymous().is_anonymous
    assert Session(user_id=None, email="a@example.com").is_anonymous
    assert not Session(user_id="u1", email="a@example.com").is_anonymous


def test_expired_trial_with_remaining_uses_is_rejected():
    with pytest.raises(ValueError):
        TrialUsage(remaining_uses=2, trial_expired=True)


def test_negative_remaining_uses_is_rejected():
    with pytest.raises(ValueError):
        TrialUsage(remaining_uses=-1, trial_expired=False)


def test_zero_remaining_without_expiry_is_allowed():
    usage = TrialUsage(remaining_uses=0, trial_expired=False)
    assert not usage.trial_expired


@pytest.mark.parametrize(
    "payload, expected",
    [
        ({"remaining_uses": 3, "trial_expired": False}, TrialUsage(3, False)),
        ({"remaining_uses": 2, "trial_expired": True}, TrialUsage(0, True)),
        ({"remaining_uses": -4, "trial_expired": False}, TrialUsage(0, False)),
        ({"remaining_uses": None, "trial_expired": True}, TrialUsage(0, True)),
    ],
)
def test_trial_usage_payload_is_normalized(payload, expected):
    usage = TrialUsage.from_payload(payload)
    assert usage == expected
    assert not usage.trial_expired or usage.remaining_uses == 0


def test_trial_usage_payload_must_be_an_object():
    with pytest.raises(ValueError):
        TrialUsage.from_payload([1, 2])


def test_history_item_rejects_missing_url():
    with pytest.raises(ValueError):
        HistoryItem.from_dict({"url": "", "timestamp": 1})


def test_article_flattens_source_object_and_image_key():
    article = Article.from_payload({
        "title": "Storm hits coast",
        "description": "desc",
        "content": "body",
        "url": "https://news.example.com/storm",
        "source": {"id": "bbc", "name": "BBC News"},
        "score": "0.82",
        "urlToImage": "https://img.example.com/storm.jpg",
    })

    assert article.source == "BBC News"
    assert article.score == pytest.approx(0.82)
    assert article.image_url == "https://img.example.com/storm.jpg"


def test_article_without_image_has_none():
    article = Article.from_payload({"title": "t", "url": "https://x.example.com", "source": "AP"})
    assert article.image_url is None
    assert article.description == ""


def test_empty_match_list_is_a_valid_result():
    result = AnalysisResult.from_payload({"matched_articles": []})
    assert result.is_empty


@pytest.mark.parametrize("payload", [None, [], {"articles": []}, {"matched_articles": "nope"}])
def test_malformed_analysis_body_raises_transport_error(payload):
    with pytest.raises(TransportError):
        AnalysisResult.from_payload(payload)


def test_malformed_article_entry_raises_transport_error():
    with pytest.raises(TransportError):
        AnalysisResult.from_payload({"matched_articles": ["just a string"]})


def test_user_profile_parses_timestamp_and_null_counters():
    profile = UserProfile.from_row({
        "id": "u1",
        "email": "ann@example.com",
        "full_name": None,
        "created_at": "2025-03-01T12:30:00+00:00",
        "links_analyzed": None,
        "visit_count": 7,
        "positive_ratings": 2,
        "negative_ratings": None,
        "is_admin": None,
    })

    assert profile.created_at == datetime(2025, 3, 1, 12, 30, tzinfo=timezone.utc)
    assert profile.links_analyzed == 0
    assert profile.visit_count == 7
    assert profile.negative_ratings == 0
    assert profile.is_admin is False
