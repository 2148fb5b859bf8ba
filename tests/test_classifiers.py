"""Tests for the per-content-type classifiers."""

import pytest

from app.modules.moderation import classifiers
from app.modules.moderation.models import ContentType, FlagType
from app.modules.moderation.schemas import (
    CommentContent,
    PostContent,
    ProfileContent,
    ScanResult,
)


def test_profile_with_flagged_bio_reports_bio_flag():
    profile = ProfileContent(username="amina", bio="hate racist bigot nazi")

    result = classifiers.scan_profile(profile)

    assert result.flagged is True
    assert result.flag_type == FlagType.HATE_SPEECH
    assert result.confidence_score == pytest.approx(4 / 9)
    assert result.details["username"]["flagged"] is False
    assert result.details["full_name"] is None
    assert result.details["bio"]["flagged"] is True


def test_profile_username_wins_over_higher_scoring_bio():
    profile = ProfileContent(
        username="click here free money act now",  # spam, 3/9
        bio="hate racist bigot nazi kkk",  # hate speech, 5/9
    )

    result = classifiers.scan_profile(profile)

    assert result.flag_type == FlagType.SPAM
    assert result.confidence_score == pytest.approx(3 / 9)
    # Every field is kept for the audit trail
    assert result.details["bio"]["flag_type"] == "hate_speech"


def test_profile_full_name_checked_before_bio():
    profile = ProfileContent(
        username="amina",
        full_name="nude porn xxx",
        bio="hate racist bigot nazi",
    )

    result = classifiers.scan_profile(profile)

    assert result.flag_type == FlagType.NUDITY


def test_clean_profile_is_not_flagged():
    profile = ProfileContent(username="amina", full_name="Amina Otieno", bio="Second year engineering")

    result = classifiers.scan_profile(profile)

    assert result == ScanResult(flagged=False)


def test_post_media_urls_are_not_scanned():
    post = PostContent(
        content="Photos from the hackathon",
        image_url="https://cdn.campus.example/nude-porn-xxx.jpg",
        video_url="https://cdn.campus.example/explicit.mp4",
    )

    assert classifiers.scan_post(post).flagged is False


def test_post_content_is_scanned():
    post = PostContent(content="click here for free money now, act now!")

    result = classifiers.scan_post(post)

    assert result.flagged is True
    assert result.flag_type == FlagType.SPAM


def test_comment_content_is_scanned():
    result = classifiers.scan_comment(CommentContent(content="nude porn"))
    assert result.flag_type == FlagType.NUDITY


@pytest.mark.parametrize("content, expected", [
    (ProfileContent(username="hate racist bigot nazi"), FlagType.HATE_SPEECH),
    (PostContent(content="urgent: limited time, risk free guarantee"), FlagType.SPAM),
    (CommentContent(content="xxx porn nude"), FlagType.NUDITY),
])
def test_classify_dispatches_on_payload_type(content, expected):
    assert classifiers.classify(content).flag_type == expected


def test_classify_rejects_unknown_payloads():
    with pytest.raises(TypeError):
        classifiers.classify("just a string")


class StubScanner:
    def __init__(self):
        self.seen = []

    def scan(self, text):
        self.seen.append(text)
        return ScanResult(flagged=True, flag_type=FlagType.TOXICITY, confidence_score=0.9, details={"model": "stub"})


def test_classifiers_use_the_supplied_scanner():
    stub = StubScanner()

    result = classifiers.classify(ProfileContent(username="amina", bio="hello"), scanner=stub)

    assert stub.seen == ["amina", "hello"]
    assert result.flag_type == FlagType.TOXICITY
    assert result.confidence_score == 0.9


def test_parse_content_builds_typed_payloads():
    content = classifiers.parse_content(ContentType.POST, {"content": "hi", "image_url": None, "group_id": "g1"})
    assert isinstance(content, PostContent)
    assert content.content == "hi"


def test_parse_content_has_no_media_classifier():
    with pytest.raises(ValueError):
        classifiers.parse_content(ContentType.MEDIA, {"url": "https://cdn.campus.example/a.png"})
