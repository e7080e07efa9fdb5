"""
ProgressCard assembly: runs every per-learner metric over one LearnerBundle.

The card is a pure function of the bundle, the organization code, the request
time and the course parameters; it never touches the store.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from progress_api.analytics import activity, insights, pace, scoring
from progress_api.analytics.skills import build_skill_metrics, skill_values
from progress_api.analytics.streaks import calculate_streaks
from progress_api.core.settings import Settings
from progress_api.schemas.progress import ProgressCard
from progress_api.store.records import LearnerBundle, RecordCategory


@dataclass(frozen=True)
class CourseParameters:
    total_lessons: int = 120
    expected_lessons_per_week: float = 5.0
    minutes_per_task: int = 15
    vocabulary_progress_target: int = 200
    conversation_progress_target: int = 40

    @classmethod
    def from_settings(cls, config: Settings) -> "CourseParameters":
        return cls(
            total_lessons=config.course_total_lessons,
            expected_lessons_per_week=config.expected_lessons_per_week,
            minutes_per_task=config.minutes_per_task,
            vocabulary_progress_target=config.vocabulary_progress_target,
            conversation_progress_target=config.conversation_progress_target,
        )


def build_progress_card(
    bundle: LearnerBundle,
    organization_code: str,
    now: datetime,
    params: CourseParameters | None = None,
) -> ProgressCard:
    params = params or CourseParameters()
    tasks = bundle.tasks

    streaks = calculate_streaks((t.completed_at for t in tasks), now)
    last_active_at = activity.last_active(tasks)
    idle_days = activity.inactivity_days(last_active_at, bundle.enrolled_at, now)
    daily_minutes = activity.average_daily_minutes(tasks, now, params.minutes_per_task)

    skills = build_skill_metrics(bundle, now)
    ranking = scoring.rank_skills(skill_values(skills))

    lessons = pace.lesson_status(
        bundle.lesson_progress,
        total_lessons=params.total_lessons,
        words_learned=skills.vocabulary.words_learned,
        conversations=pace.conversation_count(bundle.scores(RecordCategory.SPEAKING), bundle.conversations),
        vocabulary_target=params.vocabulary_progress_target,
        conversation_target=params.conversation_progress_target,
    )
    forecast = pace.forecast_pace(
        lessons.lessons_completed,
        lessons.total_lessons,
        bundle.enrolled_at,
        now,
        params.expected_lessons_per_week,
    )

    identity = bundle.identity
    return ProgressCard(
        user_id=bundle.learner_id,
        name=identity.name,
        email=identity.email,
        first_name=identity.first_name,
        last_name=identity.last_name,
        organization=organization_code,
        overall_progress=lessons.overall_progress,
        current_lesson=lessons.current_lesson,
        current_module=lessons.current_module,
        lessons_completed=lessons.lessons_completed,
        total_lessons=lessons.total_lessons,
        expected_completion=forecast.expected_completion,
        learning_velocity=forecast.learning_velocity,
        current_streak=streaks.current,
        longest_streak=streaks.longest,
        last_active_date=last_active_at,
        weekly_activity_map=activity.weekly_activity_map(tasks, now),
        average_daily_minutes=daily_minutes,
        total_study_hours=activity.total_study_hours(tasks, params.minutes_per_task),
        most_active_time=activity.most_active_time(tasks, now),
        activity_trend=activity.activity_trend(tasks, now),
        average_score=ranking.average_score,
        strongest_skill=ranking.strongest_skill,
        weakest_skill=ranking.weakest_skill,
        needs_attention=scoring.needs_attention(ranking.average_score, idle_days),
        performance_trend=activity.performance_trend(bundle),
        recent_scores=activity.recent_scores(bundle),
        skills=skills,
        learning_pace=forecast.learning_pace,
        predicted_completion_weeks=forecast.predicted_completion_weeks,
        recommended_focus=insights.recommended_focus(
            skills, ranking.weakest_skill, ranking.weakest_score, streaks.current
        ),
        achievements=insights.achievements(
            streaks.current,
            lessons.lessons_completed,
            skills.vocabulary.words_learned,
            ranking.average_score,
            now,
        ),
        recent_activities=activity.recent_activities(bundle),
        engagement_score=scoring.engagement_score(
            streaks.current, idle_days, daily_minutes, lessons.overall_progress
        ),
        at_risk_of_dropout=scoring.at_risk_of_dropout(streaks.current, idle_days),
        inactivity_days=idle_days,
        struggling_areas=ranking.struggling_areas,
    )
