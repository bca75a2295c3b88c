"""
Pruning pipeline: score every combination of an adset one at a time, delete those
under min_score, and report progress through a ProgressChannel.

Events (payload keys are the wire contract the frontend reads):
  progress  {type, message, progress, total, scored, deleted, kept}
  complete  {type: kept|deleted, index, combinationId, score, message, progress, total, scored, deleted, kept}
  error     {index, combinationId, message}
  done      {success, message, totalCombinations, scored, deleted, kept, deletedIds, minScore}
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.errors import ChannelClosed
from app.models import AdCombination
from app.services.combinations.channel import ProgressChannel, QueueProgressChannel
from app.services.combinations.store import CombinationStore
from app.services.combinations.targeting import TargetingProvider
from app.services.scoring import CombinationComponents, ScoreOracle

logger = logging.getLogger(__name__)

DEFAULT_MIN_SCORE = 70
DEFAULT_ITEM_TIMEOUT_SECONDS = 30.0


@dataclass
class PruneSummary:
    min_score: int
    total: int = 0
    scored: int = 0
    deleted: int = 0
    kept: int = 0
    deleted_ids: List[str] = field(default_factory=list)
    success: bool = True
    cancelled: bool = False
    message: str = ""

    def running_totals(self, position: int) -> dict:
        return {
            "progress": position,
            "total": self.total,
            "scored": self.scored,
            "deleted": self.deleted,
            "kept": self.kept,
        }

    def to_payload(self) -> dict:
        return {
            "success": self.success,
            "message": self.message,
            "totalCombinations": self.total,
            "scored": self.scored,
            "deleted": self.deleted,
            "kept": self.kept,
            "deletedIds": list(self.deleted_ids),
            "minScore": self.min_score,
        }


class PruningPipeline:
    def __init__(
        self,
        db: Session,
        oracle: ScoreOracle,
        targeting_provider: Optional[TargetingProvider] = None,
        item_timeout: Optional[float] = DEFAULT_ITEM_TIMEOUT_SECONDS,
    ):
        self.store = CombinationStore(db)
        self.oracle = oracle
        self.targeting_provider = targeting_provider or TargetingProvider()
        self.item_timeout = item_timeout

    async def run(self, adset_id: UUID, min_score: int, channel: ProgressChannel) -> PruneSummary:
        """
        Prune one adset. Items are processed strictly in generation order.
        Raises AdsetNotFound before emitting anything; the channel is always closed on return.
        """
        summary = PruneSummary(min_score=min_score)
        try:
            adset = self.store.get_adset(adset_id)
            try:
                targeting = await self.targeting_provider.get_targeting(adset)
                items = self.store.load_with_components(adset_id, targeting)
                summary.total = len(items)

                for index, (combination, components) in enumerate(items):
                    await self._process(index, combination, components, summary, channel)

                if summary.total == 0:
                    summary.message = "No combinations to prune"
                else:
                    summary.message = (
                        f"Pruning complete: {summary.deleted} deleted, {summary.kept} kept "
                        f"(minimum score {min_score})"
                    )
                await channel.emit("done", summary.to_payload())
            except ChannelClosed:
                summary.cancelled = True
                summary.success = False
                summary.message = "Pruning cancelled"
                logger.info(
                    "Prune for adset %s cancelled after %d of %d combinations",
                    adset_id,
                    summary.scored,
                    summary.total,
                )
            except Exception as e:
                logger.exception("Prune for adset %s failed", adset_id)
                summary.success = False
                summary.message = f"Pruning failed: {e}"
                if not channel.closed:
                    await channel.emit("done", summary.to_payload())
        finally:
            channel.close()

        logger.info(
            "Prune adset %s: total=%d scored=%d deleted=%d kept=%d",
            adset_id,
            summary.total,
            summary.scored,
            summary.deleted,
            summary.kept,
        )
        return summary

    async def _process(
        self,
        index: int,
        combination: AdCombination,
        components: CombinationComponents,
        summary: PruneSummary,
        channel: ProgressChannel,
    ) -> None:
        position = index + 1
        combination_id = str(combination.id)
        await channel.emit(
            "progress",
            {
                "type": "scoring",
                "message": f"Scoring combination {position} of {summary.total}",
                **summary.running_totals(position),
            },
        )

        # Deployed ads are live on Facebook; keep them with their stored score.
        if combination.deployed_to_facebook:
            summary.scored += 1
            summary.kept += 1
            await channel.emit(
                "complete",
                {
                    "type": "kept",
                    "index": index,
                    "combinationId": combination_id,
                    "score": combination.overall_score,
                    "message": "Deployed combination kept",
                    **summary.running_totals(position),
                },
            )
            return

        try:
            result = await asyncio.wait_for(self.oracle.score(components), timeout=self.item_timeout)
        except asyncio.TimeoutError:
            logger.warning("Scoring combination %s timed out after %ss", combination_id, self.item_timeout)
            await channel.emit(
                "error",
                {
                    "index": index,
                    "combinationId": combination_id,
                    "message": f"Scoring timed out after {self.item_timeout}s",
                },
            )
            return
        except Exception as e:
            logger.warning("Scoring combination %s failed: %s", combination_id, e)
            await channel.emit("error", {"index": index, "combinationId": combination_id, "message": str(e)})
            return

        summary.scored += 1
        self.store.update_scores(combination, result)

        if result.overall_score < summary.min_score:
            self.store.remove(combination)
            summary.deleted += 1
            summary.deleted_ids.append(combination_id)
            outcome = "deleted"
            message = f"Deleted (score {result.overall_score} < {summary.min_score})"
        else:
            summary.kept += 1
            outcome = "kept"
            message = f"Kept (score {result.overall_score})"

        await channel.emit(
            "complete",
            {
                "type": outcome,
                "index": index,
                "combinationId": combination_id,
                "score": result.overall_score,
                "message": message,
                **summary.running_totals(position),
            },
        )


async def stream_prune(
    run: Callable[[ProgressChannel], Awaitable[PruneSummary]],
    maxsize: int = 100,
) -> AsyncIterator[str]:
    """
    Run a prune in a task and yield its events as SSE messages in emission order.
    If the consumer stops iterating (client disconnect) the run is cancelled.
    """
    channel = QueueProgressChannel(maxsize=maxsize)
    task = asyncio.create_task(run(channel))
    try:
        async for event in channel:
            yield event.to_sse()
        await task
    finally:
        if not task.done():
            channel.abort()
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
