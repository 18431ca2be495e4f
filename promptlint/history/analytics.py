"""
PromptLint - History Analytics
Pure, read-only query functions over the analysis log.

Every query takes a snapshot of the store, never mutates it, and is
deterministic given the clock. Fewer than 2 considered records yield an
empty or neutral result instead of an error.
"""

from collections import Counter, defaultdict
from datetime import datetime, date, timedelta
from typing import Callable, Dict, Any, List, Optional, Tuple

import numpy as np

from ..config import HistoryConfig
from ..models.evaluation import GoldenDimension, Grade
from ..models.record import (
    AnalysisRecord,
    CategoryPerformance,
    ConsecutiveImprovementStreak,
    ImprovementAnalysis,
    IssuePattern,
    Milestone,
    MilestoneType,
    MonthlyStat,
    PerformanceTrend,
    PredictedScore,
    PredictionConfidence,
    Trend,
    TrendPoint,
    WeaknessStat,
    WeeklyStat,
)
from .store import HistoryStore


MIN_RECORDS = 2


def classify_change(earlier: float, later: float, threshold: float) -> int:
    """
    Compare two values with a relative threshold.

    Returns 1 if `later` is meaningfully higher, -1 if meaningfully lower,
    else 0. A zero `earlier` counts any positive `later` as higher.
    """
    if earlier == 0:
        return 1 if later > 0 else 0
    change = (later - earlier) / earlier
    if change > threshold:
        return 1
    if change < -threshold:
        return -1
    return 0


class HistoryAnalytics:
    """
    Trend, weakness, streak, category and prediction queries.

    Windows are anchored at `clock()`; a window of `days` holds the records
    with `timestamp >= now - days`.
    """

    def __init__(
        self,
        store: HistoryStore,
        config: Optional[HistoryConfig] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.store = store
        self.config = config or HistoryConfig()
        self.clock = clock or datetime.now

    def _window(self, days: Optional[int]) -> List[AnalysisRecord]:
        records = self.store.read_all()
        if days is None:
            return records
        since = self.clock() - timedelta(days=days)
        return [r for r in records if r.timestamp >= since]

    def score_trend(self, days: Optional[int] = None) -> List[TrendPoint]:
        """Daily average overall score. Days without records are omitted."""
        records = self._window(days or self.config.default_days)
        if len(records) < MIN_RECORDS:
            return []

        buckets: Dict[date, List[int]] = defaultdict(list)
        for record in records:
            buckets[record.timestamp.date()].append(record.overall_score)

        return [
            TrendPoint(date=day, avg_score=int(round(float(np.mean(scores)))), count=len(scores))
            for day, scores in sorted(buckets.items())
        ]

    def golden_averages(self, days: Optional[int] = None) -> Dict[str, int]:
        """Per-dimension mean (0-100) over the window."""
        records = self._window(days or self.config.default_days)
        if len(records) < MIN_RECORDS:
            return {dim.value: 0 for dim in GoldenDimension}

        return {
            dim.value: int(round(float(np.mean([r.golden(dim) for r in records]))))
            for dim in GoldenDimension
        }

    def top_weaknesses(self, limit: Optional[int] = None, days: Optional[int] = None) -> List[WeaknessStat]:
        """Most frequent issue categories; ties go to the most recently seen."""
        records = self._window(days or self.config.default_days)
        if len(records) < MIN_RECORDS:
            return []

        counts: Counter = Counter()
        last_seen: Dict[str, datetime] = {}
        for record in records:
            for issue in record.issues:
                counts[issue.category] += 1
                if issue.category not in last_seen or record.timestamp > last_seen[issue.category]:
                    last_seen[issue.category] = record.timestamp

        ranked = sorted(counts, key=lambda c: (-counts[c], -last_seen[c].timestamp()))
        limit = limit if limit is not None else self.config.default_weakness_limit
        return [
            WeaknessStat(category=c, frequency=counts[c], last_seen=last_seen[c])
            for c in ranked[:limit]
        ]

    def issue_patterns(self, days: Optional[int] = None) -> List[IssuePattern]:
        """
        Per-category issue counts with a trend.

        The window is split at `now - days/2`. Each half's share is the
        category count divided by the records in that half; the trend
        compares the recent share against the earlier one.
        """
        days = days or self.config.default_days
        records = self._window(days)
        if len(records) < MIN_RECORDS:
            return []

        midpoint = self.clock() - timedelta(days=days / 2)
        earlier = [r for r in records if r.timestamp < midpoint]
        recent = [r for r in records if r.timestamp >= midpoint]

        stats: Dict[str, Dict[str, Any]] = {}
        for record in records:
            is_recent = record.timestamp >= midpoint
            for issue in record.issues:
                entry = stats.setdefault(issue.category, {
                    "count": 0, "recent": 0, "severity": issue.severity, "last_seen": record.timestamp
                })
                entry["count"] += 1
                entry["recent"] += int(is_recent)
                if issue.severity.rank < entry["severity"].rank:
                    entry["severity"] = issue.severity
                if record.timestamp > entry["last_seen"]:
                    entry["last_seen"] = record.timestamp

        patterns = []
        for category, entry in stats.items():
            trend = Trend.STABLE
            if earlier and recent:
                earlier_share = (entry["count"] - entry["recent"]) / len(earlier)
                recent_share = entry["recent"] / len(recent)
                direction = classify_change(earlier_share, recent_share, self.config.trend_change_threshold)
                if direction < 0:
                    trend = Trend.IMPROVING
                elif direction > 0:
                    trend = Trend.WORSENING
            patterns.append(IssuePattern(
                category=category,
                severity=entry["severity"],
                count=entry["count"],
                recent_count=entry["recent"],
                trend=trend,
                last_seen=entry["last_seen"]
            ))

        patterns.sort(key=lambda p: (-p.count, -p.last_seen.timestamp()))
        return patterns

    def consecutive_improvements(self, limit: Optional[int] = None) -> List[ConsecutiveImprovementStreak]:
        """
        Maximal runs of non-decreasing overall scores, most recent first.

        A run is reported when it contains at least
        `min_streak_improvements` transitions.
        """
        records = self.store.read_all()
        if len(records) < MIN_RECORDS:
            return []

        streaks = []
        start = 0
        for i in range(1, len(records) + 1):
            if i < len(records) and records[i].overall_score >= records[i - 1].overall_score:
                continue
            end = i - 1
            if end - start >= self.config.min_streak_improvements:
                streaks.append(self._streak(records[start], records[end], end - start))
            start = i

        streaks.sort(key=lambda s: s.end_date, reverse=True)
        limit = limit if limit is not None else self.config.default_streak_limit
        return streaks[:limit]

    @staticmethod
    def _streak(first: AnalysisRecord, last: AnalysisRecord, transitions: int) -> ConsecutiveImprovementStreak:
        increase = last.overall_score - first.overall_score
        days_between = (last.timestamp - first.timestamp).days
        return ConsecutiveImprovementStreak(
            start_date=first.timestamp,
            end_date=last.timestamp,
            improvement_count=transitions,
            score_increase=increase,
            average_gain=round(increase / max(1, days_between), 2)
        )

    def category_performance(self, days: Optional[int] = None) -> List[CategoryPerformance]:
        """
        Per-category averages and trend. `days=None` uses the whole log.

        The trend compares the mean of the later half of a category's
        records against the earlier half.
        """
        records = [r for r in self._window(days) if r.category]
        if len(records) < MIN_RECORDS:
            return []

        groups: Dict[str, List[AnalysisRecord]] = defaultdict(list)
        for record in records:
            groups[record.category].append(record)

        results = []
        for category, group in groups.items():
            scores = [r.overall_score for r in group]
            trend = PerformanceTrend.STABLE
            if len(group) >= MIN_RECORDS:
                half = len(scores) // 2
                direction = classify_change(
                    float(np.mean(scores[:half])),
                    float(np.mean(scores[half:])),
                    self.config.trend_change_threshold
                )
                if direction > 0:
                    trend = PerformanceTrend.IMPROVING
                elif direction < 0:
                    trend = PerformanceTrend.DECLINING

            weakness_counts = Counter(issue.category for r in group for issue in r.issues)
            common = weakness_counts.most_common(1)

            results.append(CategoryPerformance(
                category=category,
                count=len(group),
                average_score=int(round(float(np.mean(scores)))),
                best_score=max(scores),
                trend=trend,
                common_weakness=common[0][0] if common else None
            ))

        results.sort(key=lambda c: (-c.count, c.category))
        return results

    def predicted_score(self, window_days: Optional[int] = None) -> PredictedScore:
        """
        Least-squares forecast of the next overall score.

        Regresses score on fractional days since the first record in the
        window; the prediction is the last fitted value plus one day of slope.
        """
        records = self._window(window_days or self.config.default_days)
        if len(records) < MIN_RECORDS:
            last = records[-1].overall_score if records else 0
            return PredictedScore(predicted_score=last, confidence=PredictionConfidence.LOW, trend=0)

        origin = records[0].timestamp
        x = np.array([(r.timestamp - origin).total_seconds() / 86400.0 for r in records])
        y = np.array([r.overall_score for r in records], dtype=float)

        if np.ptp(x) == 0:
            slope, intercept = 0.0, float(np.mean(y))
        else:
            slope, intercept = (float(v) for v in np.polyfit(x, y, 1))

        fitted = slope * x + intercept
        variance = float(np.var(y - fitted))
        predicted = int(round(min(100.0, max(0.0, fitted[-1] + slope))))

        n = len(records)
        if n >= self.config.prediction_high_samples and variance < self.config.prediction_variance_threshold:
            confidence = PredictionConfidence.HIGH
        elif n >= self.config.prediction_medium_samples:
            confidence = PredictionConfidence.MEDIUM
        else:
            confidence = PredictionConfidence.LOW

        return PredictedScore(predicted_score=predicted, confidence=confidence, trend=int(round(slope)))

    def recent(self, limit: int = 30) -> List[AnalysisRecord]:
        """Newest records first."""
        return list(reversed(self.store.read_all()))[:limit]

    def stats(self) -> Dict[str, Any]:
        records = self.store.read_all()
        distribution = {grade.value: 0 for grade in Grade}
        for record in records:
            distribution[record.grade.value] += 1

        return {
            "total_analyses": len(records),
            "average_score": int(round(float(np.mean([r.overall_score for r in records])))) if records else 0,
            "best_score": max((r.overall_score for r in records), default=0),
            "grade_distribution": distribution,
            "last_analyzed_at": records[-1].timestamp.isoformat() if records else None,
        }

    def _week_buckets(self, weeks: int) -> List[Tuple[date, List[AnalysisRecord]]]:
        """(week_start, records) for the last `weeks` ISO weeks, oldest first."""
        today = self.clock().date()
        this_monday = today - timedelta(days=today.weekday())
        starts = [this_monday - timedelta(weeks=i) for i in range(weeks - 1, -1, -1)]

        buckets: Dict[date, List[AnalysisRecord]] = {start: [] for start in starts}
        for record in self.store.read_all():
            day = record.timestamp.date()
            week_start = day - timedelta(days=day.weekday())
            if week_start in buckets:
                buckets[week_start].append(record)
        return [(start, buckets[start]) for start in starts]

    def weekly_stats(self, weeks: int = 4) -> List[WeeklyStat]:
        """Per ISO week averages, oldest first. Empty weeks have count 0."""
        stats = []
        previous_avg = None
        for week_start, records in self._week_buckets(weeks):
            avg = int(round(float(np.mean([r.overall_score for r in records])))) if records else 0
            improvement = avg - previous_avg if records and previous_avg is not None else 0
            stats.append(WeeklyStat(week_start=week_start, avg_score=avg, count=len(records), improvement=improvement))
            if records:
                previous_avg = avg
        return stats

    def golden_trend_by_dimension(self, dimension: GoldenDimension, weeks: int = 8) -> List[TrendPoint]:
        """Weekly average of one GOLDEN dimension, weeks without records omitted."""
        return [
            TrendPoint(
                date=week_start,
                avg_score=int(round(float(np.mean([r.golden(dimension) for r in records])))),
                count=len(records)
            )
            for week_start, records in self._week_buckets(weeks)
            if records
        ]

    def monthly_stats(self, months: int = 6) -> List[MonthlyStat]:
        """Per calendar month averages for the last `months` months, oldest first. Empty months are omitted."""
        today = self.clock().date()
        year, month = today.year, today.month - (months - 1)
        while month < 1:
            year, month = year - 1, month + 12
        since = datetime(year, month, 1)

        buckets: Dict[str, List[AnalysisRecord]] = defaultdict(list)
        for record in self.store.read_all():
            if record.timestamp >= since:
                buckets[record.timestamp.strftime("%Y-%m")].append(record)

        return [
            MonthlyStat(
                month=key,
                avg_score=int(round(float(np.mean([r.overall_score for r in records])))),
                count=len(records),
                grade_distribution=dict(Counter(r.grade.value for r in records))
            )
            for key, records in sorted(buckets.items())
        ]

    def improvement_analysis(self) -> ImprovementAnalysis:
        """
        Summary over the whole log.

        overall_improvement is the last active ISO week's average minus the
        first one's (0 with fewer than two active weeks). The streak counts
        consecutive active days ending today, or yesterday when nothing was
        analyzed yet today.
        """
        records = self.store.read_all()
        if not records:
            return ImprovementAnalysis(overall_improvement=0, best_dimension=None, worst_dimension=None, streak=0)

        weeks: Dict[date, List[int]] = defaultdict(list)
        for record in records:
            day = record.timestamp.date()
            weeks[day - timedelta(days=day.weekday())].append(record.overall_score)
        ordered = [weeks[start] for start in sorted(weeks)]
        improvement = 0
        if len(ordered) >= MIN_RECORDS:
            improvement = int(round(float(np.mean(ordered[-1]) - np.mean(ordered[0]))))

        averages = {
            dim.value: float(np.mean([r.golden(dim) for r in records]))
            for dim in GoldenDimension
        }
        # Ties resolve to the earlier GOLDEN dimension
        best = max(averages, key=lambda d: averages[d])
        worst = min(averages, key=lambda d: averages[d])

        milestones = []
        first_a = next((r for r in records if r.grade == Grade.A), None)
        if first_a is not None:
            milestones.append(Milestone(MilestoneType.FIRST_A_GRADE, first_a.timestamp, first_a.overall_score))
        highest = max(records, key=lambda r: r.overall_score)
        milestones.append(Milestone(MilestoneType.HIGHEST_SCORE, highest.timestamp, highest.overall_score))

        return ImprovementAnalysis(
            overall_improvement=improvement,
            best_dimension=best,
            worst_dimension=worst,
            streak=self._active_day_streak({r.timestamp.date() for r in records}),
            milestones=milestones
        )

    def _active_day_streak(self, active_days) -> int:
        day = self.clock().date()
        if day not in active_days:
            day -= timedelta(days=1)
        streak = 0
        while day in active_days:
            streak += 1
            day -= timedelta(days=1)
        return streak
