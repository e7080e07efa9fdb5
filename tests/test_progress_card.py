from __future__ import annotations

import random
from datetime import timedelta

from fakes import bundle, conversation, grammar_errors, lessons, scores, task, tasks_on_days, vocabulary

from progress_api.analytics.card import CourseParameters, build_progress_card
from progress_api.store.records import SCORED_SKILLS, LearnerAccount, RecordCategory, Severity

LEARNER = "user_2abcdef"


def test_learner_without_any_data(now):
    card = build_progress_card(bundle(LEARNER), "ORG1", now)
    assert card.name == "Student 2abc"
    assert card.organization == "ORG1"
    assert card.overall_progress == 0
    assert card.average_score == 0
    assert card.current_streak == 0
    assert card.longest_streak == 0
    assert card.last_active_date is None
    assert card.inactivity_days == 0
    assert card.needs_attention is True
    assert card.at_risk_of_dropout is False
    assert card.predicted_completion_weeks is None
    assert card.expected_completion is None
    assert card.learning_velocity == 0
    assert card.learning_pace == "behind"
    assert card.achievements == []
    assert card.recent_scores == []
    assert card.recent_activities == []
    assert card.most_active_time == "afternoon"
    assert card.current_lesson == "Not Started"
    assert card.current_module == "Module 1"
    assert card.strongest_skill == "Speaking"
    assert card.weakest_skill == "Speaking"
    assert len(card.struggling_areas) == 6
    assert card.weekly_activity_map == {(now.date() - timedelta(days=i)).isoformat(): 0 for i in range(7)}
    assert "Re-establish daily practice" in card.recommended_focus
    # Base 50 plus full recency credit.
    assert card.engagement_score == 70


def test_inactivity_counts_from_enrollment_without_activity(now):
    account = LearnerAccount(learner_id=LEARNER, created_at=now - timedelta(days=10))
    card = build_progress_card(bundle(LEARNER, account=account), "ORG1", now)
    assert card.inactivity_days == 10
    assert card.at_risk_of_dropout is True


def test_future_dated_completion_counts_as_today(now):
    b = bundle(LEARNER, tasks=[task(LEARNER, now + timedelta(days=1))])
    card = build_progress_card(b, "ORG1", now)
    assert card.current_streak == 1
    assert card.weekly_activity_map[now.date().isoformat()] == 1
    assert sum(card.weekly_activity_map.values()) == 1


def _active_bundle(now):
    return bundle(
        LEARNER,
        account=LearnerAccount(learner_id=LEARNER, name="Mia Schulz", created_at=now - timedelta(weeks=4)),
        tasks=tasks_on_days(LEARNER, now, [0, 1, 2, 3, 4, 5, 6, 6, 8]),
        lesson_progress=lessons(LEARNER, 12, now),
        skill_scores={
            RecordCategory.SPEAKING: scores(LEARNER, RecordCategory.SPEAKING, [90, 85, 95, 60, 55, 65], now),
            RecordCategory.LISTENING: scores(LEARNER, RecordCategory.LISTENING, [80, 80, 80], now),
            RecordCategory.READING: scores(LEARNER, RecordCategory.READING, [85], now),
            RecordCategory.WRITING: scores(LEARNER, RecordCategory.WRITING, [75], now),
            RecordCategory.PRONUNCIATION: scores(LEARNER, RecordCategory.PRONUNCIATION, [90], now),
        },
        grammar_errors=grammar_errors(LEARNER, [Severity.LOW] * 9 + [Severity.HIGH], now),
        vocabulary=vocabulary(LEARNER, 120, now),
        conversations=[conversation(LEARNER, now - timedelta(minutes=30))],
    )


def test_active_learner_card(now):
    card = build_progress_card(_active_bundle(now), "ORG1", now, CourseParameters())
    assert card.name == "Mia Schulz"
    assert card.current_streak == 7
    assert card.longest_streak == 7
    assert card.inactivity_days == 0
    assert card.last_active_date == now
    assert card.lessons_completed == 12
    assert card.overall_progress == 10
    assert card.learning_velocity == 3.0
    assert card.learning_pace == "behind"
    assert card.predicted_completion_weeks == 36
    assert card.skills.speaking.trend == "up"
    assert card.skills.grammar.error_rate == 10
    assert card.skills.vocabulary.words_learned == 120
    # Speaking 75, Listening 80, Reading 85, Writing 75, Pronunciation 90, Grammar 90.
    assert card.average_score == 83
    assert card.strongest_skill == "Pronunciation"
    assert card.weakest_skill == "Speaking"
    assert card.needs_attention is False
    assert card.at_risk_of_dropout is False
    assert [a.name for a in card.achievements] == [
        "Week Streak",
        "10 Lessons Complete",
        "100 Words Learned",
        "High Performer",
    ]
    assert len(card.recent_activities) == 5
    assert len(card.recent_scores) <= 10
    assert sum(card.weekly_activity_map.values()) == 8
    assert card.activity_trend == "increasing"
    assert 0 <= card.engagement_score <= 100


def test_card_serializes_with_camel_case_keys(now):
    payload = build_progress_card(_active_bundle(now), "ORG1", now).model_dump(by_alias=True, mode="json")
    for key in (
        "userId",
        "overallProgress",
        "weeklyActivityMap",
        "atRiskOfDropout",
        "predictedCompletionWeeks",
        "strugglingAreas",
    ):
        assert key in payload
    assert payload["skills"]["grammar"]["errorRate"] == 10
    assert payload["skills"]["vocabulary"]["wordsLearned"] == 120


def test_course_parameters_drive_totals(now):
    params = CourseParameters(total_lessons=24, minutes_per_task=30)
    card = build_progress_card(_active_bundle(now), "ORG1", now, params)
    assert card.total_lessons == 24
    assert card.overall_progress == 50
    assert card.total_study_hours == 5
    assert card.average_daily_minutes == 9


def test_struggling_areas_lists_low_skills(now):
    b = bundle(
        LEARNER,
        skill_scores={RecordCategory.SPEAKING: scores(LEARNER, RecordCategory.SPEAKING, [30], now)},
    )
    card = build_progress_card(b, "ORG1", now)
    assert card.struggling_areas == ["Speaking", "Listening", "Reading", "Writing", "Pronunciation"]


def test_card_invariants_hold_for_random_learners(now):
    rng = random.Random(42)
    for n in range(40):
        learner = f"user_{n:04d}"
        b = bundle(
            learner,
            account=LearnerAccount(learner_id=learner, created_at=now - timedelta(days=rng.randint(0, 400))),
            tasks=tasks_on_days(learner, now, [rng.randint(0, 60) for _ in range(rng.randint(0, 40))]),
            lesson_progress=lessons(learner, rng.randint(0, 150), now),
            skill_scores={
                skill: scores(learner, skill, [rng.uniform(0, 100) for _ in range(rng.randint(0, 12))], now)
                for skill in SCORED_SKILLS
            },
            grammar_errors=grammar_errors(
                learner, [rng.choice(list(Severity)) for _ in range(rng.randint(0, 15))], now
            ),
            vocabulary=vocabulary(learner, rng.randint(0, 300), now, days_ago=rng.randint(0, 20)),
        )
        card = build_progress_card(b, "ORG1", now)
        assert card.lessons_completed <= card.total_lessons
        assert 0 <= card.overall_progress <= 100
        assert 0 <= card.engagement_score <= 100
        assert card.current_streak <= card.longest_streak
        assert card.at_risk_of_dropout == (
            card.inactivity_days > 7 or (card.current_streak == 0 and card.inactivity_days > 3)
        )
        if card.learning_velocity == 0:
            assert card.predicted_completion_weeks is None
            assert card.expected_completion is None
