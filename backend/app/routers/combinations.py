"""
Ad combination routes: generate, list, prune (optionally streamed as SSE), delete, mark deployed.
Use ?stream=1 on prune to get progress events as they happen.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from uuid import UUID
from typing import List, Literal, Optional
import logging

from app.config import get_settings
from app.database import get_db, get_session_factory
from app.errors import (
    AdsetNotFound,
    CombinationError,
    CombinationNotFound,
    DeployedImmutable,
    EmptySelection,
    GenerationIncomplete,
    InvalidSelection,
    SelectionTooLarge,
)
from app.schemas import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    CombinationResponse,
    GenerateCombinationsResponse,
    MarkDeployedRequest,
    SelectionSet,
)
from app.services.combinations import (
    CollectingChannel,
    ComboGenerator,
    CombinationStore,
    PruningPipeline,
    TargetingProvider,
    stream_prune,
)
from app.services.scoring import ScoreOracle, get_score_oracle

router = APIRouter(prefix="/api/adsets/{adset_id}/combinations", tags=["combinations"])
logger = logging.getLogger(__name__)

STATUS_BY_ERROR = (
    ((EmptySelection, InvalidSelection, SelectionTooLarge), 400),
    ((AdsetNotFound, CombinationNotFound), 404),
    ((DeployedImmutable,), 409),
    ((GenerationIncomplete,), 500),
)


def http_error(e: CombinationError) -> HTTPException:
    for error_types, status_code in STATUS_BY_ERROR:
        if isinstance(e, error_types):
            return HTTPException(status_code=status_code, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


def get_oracle(request: Request) -> ScoreOracle:
    """Oracle built at startup, or a fresh one from settings when startup has not run."""
    oracle = getattr(request.app.state, "score_oracle", None)
    if oracle is None:
        oracle = get_score_oracle(get_settings(), getattr(request.app.state, "llm_service", None))
    return oracle


def get_targeting_provider(request: Request) -> TargetingProvider:
    return getattr(request.app.state, "targeting_provider", None) or TargetingProvider()


@router.post("/generate", response_model=GenerateCombinationsResponse)
def generate_combinations(adset_id: UUID, selection: SelectionSet, db: Session = Depends(get_db)):
    """
    Replace the adset's combinations with every asset x headline x body x description x CTA
    combination of the selection. Body accepts camelCase or snake_case keys
    (selectedAssets / assets, selectedCTAs / cta_types, ...).
    """
    generator = ComboGenerator(db, get_settings())
    try:
        combinations = generator.generate(adset_id, selection)
    except CombinationError as e:
        raise http_error(e)
    return GenerateCombinationsResponse(
        success=True,
        total_combinations=len(combinations),
        combinations=[CombinationResponse.model_validate(c) for c in combinations],
    )


@router.get("", response_model=List[CombinationResponse])
def list_combinations(
    adset_id: UUID,
    sort_by: Optional[Literal["overallScore", "predictedCTR"]] = None,
    limit: Optional[int] = Query(default=None, ge=1, le=10000),
    db: Session = Depends(get_db),
):
    """Combinations in generation order, or best first when sort_by is given."""
    store = CombinationStore(db)
    try:
        store.get_adset(adset_id)
    except AdsetNotFound as e:
        raise http_error(e)
    return store.list_for_adset(adset_id, sort_by=sort_by, limit=limit)


async def _prune_stream(
    adset_id: UUID,
    min_score: int,
    oracle: ScoreOracle,
    targeting_provider: TargetingProvider,
    session_factory,
):
    """SSE generator with its own session; the request-scoped one closes before streaming ends."""
    settings = get_settings()
    db = session_factory()
    try:
        pipeline = PruningPipeline(
            db, oracle, targeting_provider, item_timeout=settings.oracle_timeout_seconds
        )
        async for message in stream_prune(
            lambda channel: pipeline.run(adset_id, min_score, channel),
            maxsize=settings.progress_channel_maxsize,
        ):
            yield message
    finally:
        db.close()


@router.post("/prune")
async def prune_combinations(
    adset_id: UUID,
    min_score: Optional[int] = Query(default=None, ge=0, le=100),
    stream: bool = False,
    db: Session = Depends(get_db),
    session_factory=Depends(get_session_factory),
    oracle: ScoreOracle = Depends(get_oracle),
    targeting_provider: TargetingProvider = Depends(get_targeting_provider),
):
    """
    Score every combination and delete those below min_score (default 70).
    ?stream=1 returns text/event-stream with progress / complete / error / done events;
    otherwise the done summary is returned as JSON.
    """
    settings = get_settings()
    if min_score is None:
        min_score = settings.prune_default_min_score

    try:
        CombinationStore(db).get_adset(adset_id)
    except AdsetNotFound as e:
        raise http_error(e)

    if stream:
        return StreamingResponse(
            _prune_stream(adset_id, min_score, oracle, targeting_provider, session_factory),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive", "X-Accel-Buffering": "no"},
        )

    pipeline = PruningPipeline(db, oracle, targeting_provider, item_timeout=settings.oracle_timeout_seconds)
    channel = CollectingChannel()
    summary = await pipeline.run(adset_id, min_score, channel)
    return summary.to_payload()


@router.post("/bulk-delete", response_model=BulkDeleteResponse)
def bulk_delete_combinations(adset_id: UUID, body: BulkDeleteRequest, db: Session = Depends(get_db)):
    """Delete many combinations. Deployed ones are skipped; deleted_count is what was actually removed."""
    if not body.combination_ids:
        raise HTTPException(status_code=400, detail="combinationIds must be a non-empty list")
    store = CombinationStore(db)
    try:
        store.get_adset(adset_id)
    except AdsetNotFound as e:
        raise http_error(e)
    deleted = store.bulk_delete(body.combination_ids, adset_id=adset_id)
    logger.info("Bulk-deleted %d of %d combinations for adset %s", deleted, len(body.combination_ids), adset_id)
    return BulkDeleteResponse(success=True, deleted_count=deleted)


@router.delete("/{combination_id}")
def delete_combination(adset_id: UUID, combination_id: UUID, db: Session = Depends(get_db)):
    try:
        CombinationStore(db).delete(combination_id, adset_id=adset_id)
    except (CombinationNotFound, DeployedImmutable) as e:
        raise http_error(e)
    return {"success": True, "message": "Combination deleted"}


@router.post("/{combination_id}/deployed", response_model=CombinationResponse)
def mark_combination_deployed(
    adset_id: UUID,
    combination_id: UUID,
    body: MarkDeployedRequest,
    db: Session = Depends(get_db),
):
    """Record that the combination was published as a Facebook ad. It is immutable afterwards."""
    try:
        return CombinationStore(db).mark_deployed(combination_id, body.facebook_ad_id, adset_id=adset_id)
    except (CombinationNotFound, DeployedImmutable) as e:
        raise http_error(e)
