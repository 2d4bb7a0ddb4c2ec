"""Per-category game progress merging and cross-category totals."""

from datetime import datetime
from typing import TYPE_CHECKING, Dict, Mapping

import structlog
from pydantic.fields import FieldInfo

from app.schemas.games import GameMetricsBase, GameType, GameTypeProgress, MergePolicy
from app.schemas.progress import Totals

if TYPE_CHECKING:
    from app.models.progress import Progress

logger = structlog.get_logger()


def _merge_policy(field: FieldInfo) -> MergePolicy:
    for marker in field.metadata:
        if isinstance(marker, MergePolicy):
            return marker
    return MergePolicy.OVERWRITE


class GameProgressAggregator:
    """Folds reported game metrics into a learner's stored category records."""

    def merge(self, record: GameTypeProgress, metrics: GameMetricsBase) -> GameTypeProgress:
        """Merge only the fields the caller set, each by its declared policy."""
        fields = type(metrics).model_fields
        updates = {}

        for name in metrics.model_fields_set:
            if name == "game_type":
                continue

            incoming = getattr(metrics, name)
            if incoming is None:
                continue

            current = getattr(record, name)
            policy = _merge_policy(fields[name])

            if policy is MergePolicy.SUM:
                updates[name] = current + incoming
            elif policy is MergePolicy.MAX:
                updates[name] = incoming if current is None else max(current, incoming)
            else:
                updates[name] = incoming

        return record.model_copy(update=updates)

    def recompute_totals(self, records: Mapping[GameType, GameTypeProgress]) -> Totals:
        accuracies = [r.accuracy for r in records.values() if r.accuracy > 0]

        return Totals(
            total_games_played=sum(r.completed for r in records.values()),
            total_time_spent=sum(r.time_spent for r in records.values()),
            average_accuracy=sum(accuracies) / len(accuracies) if accuracies else 0.0,
        )

    def apply(self, progress: "Progress", metrics: GameMetricsBase, now: datetime) -> GameTypeProgress:
        """Merge ``metrics`` into ``progress`` and refresh its derived totals."""
        category = GameType(metrics.game_type)
        records: Dict[GameType, GameTypeProgress] = progress.game_records()

        merged = self.merge(records.get(category, GameTypeProgress()), metrics)
        if "last_played" not in metrics.model_fields_set or metrics.last_played is None:
            merged = merged.model_copy(update={"last_played": now})

        records[category] = merged
        progress.game_progress = {
            key.value: value.model_dump(mode="json") for key, value in records.items()
        }

        totals = self.recompute_totals(records)
        progress.total_games_played = totals.total_games_played
        progress.total_time_spent = totals.total_time_spent
        progress.average_accuracy = totals.average_accuracy

        logger.debug(
            "Game progress merged",
            user_id=progress.user_id,
            game_type=category.value,
            completed=merged.completed,
            total_games_played=totals.total_games_played,
        )
        return merged
