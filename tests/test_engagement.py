import pytest

from tiktool import db
from tiktool.errors import ConflictError, NotFoundError, ValidationError
from tiktool.models.engagement import FollowedProfile, PromotedProfile, Video
from tiktool.models.progression import Challenge, ChallengeProgress
from tiktool.models.user_statistics import UserStatistics
from tiktool.services import engagement, ledger


def _stats(user_id):
    return UserStatistics.query.filter_by(user_id=user_id).first()


def test_register_profile_normalizes_handle(app, make_user):
    owner = make_user("owner")
    result = engagement.register_profile(owner.id, "  creator.one ")
    assert result["already_done"] is False
    assert result["profile"]["username"] == "@creator.one"

    again = engagement.register_profile(owner.id, "@creator.one")
    assert again["already_done"] is True
    assert PromotedProfile.query.count() == 1


def test_register_profile_rejects_bad_or_taken_handles(app, make_user):
    owner = make_user("owner")
    other = make_user("other")
    engagement.register_profile(owner.id, "@creator")

    with pytest.raises(ValidationError):
        engagement.register_profile(owner.id, "")
    with pytest.raises(ValidationError):
        engagement.register_profile(owner.id, "@has spaces")
    with pytest.raises(ValidationError):
        engagement.register_profile(other.id, "creator")


def test_follow_is_idempotent(app, make_user):
    owner = make_user("owner")
    fan = make_user("fan")
    profile_id = engagement.register_profile(owner.id, "@owner")["profile"]["id"]

    first = engagement.follow_profile(fan.id, profile_id)
    second = engagement.follow_profile(fan.id, profile_id)

    assert first["already_done"] is False
    assert first["points_awarded"] == 2
    assert second["already_done"] is True
    assert second["points_awarded"] == 0
    assert ledger.get_balance(fan.id) == 12
    assert FollowedProfile.query.count() == 1
    assert _stats(owner.id).followers_gained == 1
    assert db.session.get(PromotedProfile, profile_id).followers == 1


def test_follow_advances_follow_challenge(app, make_user):
    owner = make_user("owner")
    fan = make_user("fan")
    profile_id = engagement.register_profile(owner.id, "@owner")["profile"]["id"]

    result = engagement.follow_profile(fan.id, profile_id)

    assert result["challenge"]["progress"] == 1
    assert result["challenge"]["goal"] == 30
    follow_challenge = Challenge.query.filter_by(code="follow_30").first()
    row = ChallengeProgress.query.filter_by(user_id=fan.id, challenge_id=follow_challenge.id).first()
    assert row.progress == 1


def test_follow_completing_the_challenge_pays_challenge_reward(app, make_user):
    owner = make_user("owner")
    fan = make_user("fan")
    follow_challenge = Challenge.query.filter_by(code="follow_30").first()
    follow_challenge.goal = 1
    profile_id = engagement.register_profile(owner.id, "@owner")["profile"]["id"]

    result = engagement.follow_profile(fan.id, profile_id)

    assert result["challenge"]["just_completed"] is True
    assert result["challenge"]["points_awarded"] == follow_challenge.points
    assert ledger.get_balance(fan.id) == 10 + 2 + follow_challenge.points


def test_follow_rejects_own_and_unknown_profiles(app, make_user):
    owner = make_user("owner")
    profile_id = engagement.register_profile(owner.id, "@owner")["profile"]["id"]

    with pytest.raises(ValidationError):
        engagement.follow_profile(owner.id, profile_id)
    with pytest.raises(NotFoundError):
        engagement.follow_profile(owner.id, 4242)


def test_suggested_profiles_skip_own_and_followed(app, make_user):
    a = make_user("a")
    b = make_user("b")
    c = make_user("c")
    pb = engagement.register_profile(b.id, "@bbb")["profile"]["id"]
    engagement.register_profile(c.id, "@ccc")
    engagement.register_profile(a.id, "@aaa")

    engagement.follow_profile(a.id, pb)
    suggested = [p["username"] for p in engagement.suggested_profiles(a.id)]

    assert suggested == ["@ccc"]


def test_submit_video_credits_points_once(app, make_user):
    user = make_user()
    url = "https://www.tiktok.com/@creator/video/7234567890123456789"

    first = engagement.submit_video(user.id, url)
    second = engagement.submit_video(user.id, url)

    assert first["already_done"] is False
    assert first["points_awarded"] == 5
    assert first["video"]["username"] == "creator"
    assert first["video"]["external_id"] == "7234567890123456789"
    assert second["already_done"] is True
    assert ledger.get_balance(user.id) == 15
    assert _stats(user.id).videos_shared == 1


def test_share_links_are_accepted(app):
    assert engagement.parse_video_url("https://www.tiktok.com/t/ZT8abcDEF/") == ("ZT8abcDEF", "username")


@pytest.mark.parametrize(
    "url",
    [
        "",
        "not a url",
        "https://example.com/@creator/video/123",
        "https://www.tiktok.com/@creator",
        "https://tiktok.com.evil.example/@x/video/123",
        "ftp://www.tiktok.com/@x/video/123",
    ],
)
def test_malformed_video_urls_are_rejected(app, make_user, url):
    user = make_user()
    with pytest.raises(ValidationError):
        engagement.submit_video(user.id, url)
    assert ledger.get_balance(user.id) == 10


def test_interactions_count_once_per_user(app, make_user):
    owner = make_user("owner")
    fan = make_user("fan")
    video_id = engagement.submit_video(owner.id, "https://www.tiktok.com/@owner/video/111")["video"]["id"]

    engagement.interact_with_video(fan.id, video_id, "like")
    repeat = engagement.interact_with_video(fan.id, video_id, "like")
    viewed = engagement.interact_with_video(fan.id, video_id, "view")

    assert repeat["already_done"] is True
    assert viewed["video"]["likes"] == 1
    assert viewed["video"]["views"] == 1


def test_interaction_validation(app, make_user):
    user = make_user()
    with pytest.raises(ValidationError):
        engagement.interact_with_video(user.id, 1, "share")
    with pytest.raises(NotFoundError):
        engagement.interact_with_video(user.id, 999, "like")


def test_generate_content_bumps_counters_without_points(app, make_user):
    user = make_user()

    ideas = engagement.generate_content(user.id, "ideas", "tech")
    tags = engagement.generate_content(user.id, "hashtags", "dance")
    analysis = engagement.generate_content(
        user.id, "analysis", profile={"followers": 2000, "likes": 800, "views": 6000}
    )

    assert len(ideas["ideas"]) == 3
    assert len(tags["hashtags"]) == 10
    assert 0 <= analysis["analysis"]["score"] <= 100
    stats = _stats(user.id)
    assert stats.ideas_generated == 2
    assert stats.analyses_completed == 1
    assert stats.points == 10


def test_generate_content_validation(app, make_user):
    user = make_user()
    with pytest.raises(ValidationError):
        engagement.generate_content(user.id, "ideas", "gardening")
    with pytest.raises(ValidationError):
        engagement.generate_content(user.id, "poems", "tech")
    with pytest.raises(ValidationError):
        engagement.generate_content(user.id, "analysis", profile={"followers": "lots"})


def _misses_once(real):
    calls = []

    def lookup(*args):
        calls.append(args)
        if len(calls) == 1:
            return None
        return real(*args)

    return lookup


def test_racing_follow_is_reported_as_already_done(app, make_user, monkeypatch):
    owner = make_user("owner")
    fan = make_user("fan")
    profile_id = engagement.register_profile(owner.id, "@owner")["profile"]["id"]
    engagement.follow_profile(fan.id, profile_id)

    # the duplicate check misses the row a concurrent request just wrote
    monkeypatch.setattr(engagement, "_is_following", _misses_once(engagement._is_following))

    again = engagement.follow_profile(fan.id, profile_id)

    assert again["already_done"] is True
    assert again["points_awarded"] == 0
    assert ledger.get_balance(fan.id) == 12
    assert FollowedProfile.query.count() == 1
    assert db.session.get(PromotedProfile, profile_id).followers == 1


def test_racing_video_submission_is_reported_as_already_done(app, make_user, monkeypatch):
    user = make_user()
    url = "https://www.tiktok.com/@creator/video/555"
    engagement.submit_video(user.id, url)

    monkeypatch.setattr(engagement, "_find_video", _misses_once(engagement._find_video))

    again = engagement.submit_video(user.id, url)

    assert again["already_done"] is True
    assert ledger.get_balance(user.id) == 15
    assert Video.query.count() == 1
    assert _stats(user.id).videos_shared == 1


def test_conflict_that_persists_after_retry_is_raised(app, make_user, monkeypatch):
    owner = make_user("owner")
    fan = make_user("fan")
    profile_id = engagement.register_profile(owner.id, "@owner")["profile"]["id"]
    engagement.follow_profile(fan.id, profile_id)

    monkeypatch.setattr(engagement, "_is_following", lambda user_id, profile_id: False)

    with pytest.raises(ConflictError) as excinfo:
        engagement.follow_profile(fan.id, profile_id)

    assert excinfo.value.status_code == 409
    assert ledger.get_balance(fan.id) == 12
