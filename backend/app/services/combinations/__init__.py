"""
Combination workflow: generate the Cartesian product of selected components,
score and prune it, and stream progress to the client.
"""
from app.services.combinations.channel import (
    CollectingChannel,
    ProgressChannel,
    ProgressEvent,
    QueueProgressChannel,
    format_sse,
)
from app.services.combinations.generator import ComboGenerator, count_combinations, expand_selection
from app.services.combinations.pruning import PruneSummary, PruningPipeline, stream_prune
from app.services.combinations.store import CombinationStore
from app.services.combinations.targeting import TargetingProvider, targeting_from_graph
