"""
Domain errors for combination generation, scoring and pruning.
Routers translate these into HTTP responses; the pipeline reports per-item
scoring failures as progress events instead of raising them.
"""
from typing import Optional


class CombinationError(Exception):
    """Base class for combination workflow errors."""


SINGULAR = {"assets": "asset", "headlines": "headline", "bodies": "body", "descriptions": "description"}


class EmptySelection(CombinationError):
    """A required component pool (assets, headlines, bodies) was empty."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"At least one {SINGULAR.get(field, field)} is required.")


class InvalidSelection(CombinationError):
    """Some selected ids did not resolve (stale, deleted or foreign ids)."""

    def __init__(self, field: str, missing_ids: Optional[list] = None):
        self.field = field
        self.missing_ids = list(missing_ids or [])
        super().__init__(f"Invalid {field} selection: {len(self.missing_ids)} id(s) not found for this adset.")


class SelectionTooLarge(CombinationError):
    def __init__(self, requested: int, limit: int):
        self.requested = requested
        self.limit = limit
        super().__init__(f"Selection expands to {requested} combinations (limit {limit}).")


class AdsetNotFound(CombinationError):
    def __init__(self, adset_id):
        self.adset_id = adset_id
        super().__init__(f"Adset {adset_id} not found")


class CombinationNotFound(CombinationError):
    def __init__(self, combination_id):
        self.combination_id = combination_id
        super().__init__(f"Combination {combination_id} not found")


class DeployedImmutable(CombinationError):
    """Deployed combinations can be neither edited nor deleted."""

    def __init__(self, combination_id):
        self.combination_id = combination_id
        super().__init__(f"Combination {combination_id} is deployed to Facebook and cannot be modified")


class GenerationIncomplete(CombinationError):
    """
    Prior combinations were deleted but the new set was not inserted.
    The adset is left with no generated combinations; re-run generation.
    """

    def __init__(self, adset_id, cause: Optional[BaseException] = None):
        self.adset_id = adset_id
        self.cause = cause
        super().__init__(
            f"Generation for adset {adset_id} deleted existing combinations but failed to insert new ones: {cause}"
        )


class ScoringFailed(CombinationError):
    """The oracle could not score one combination. Non-fatal for a pruning run."""


class ChannelClosed(CombinationError):
    """The progress channel was closed, usually because the consumer went away."""
