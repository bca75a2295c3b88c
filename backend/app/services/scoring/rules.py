"""
Rule dictionaries and pure sub-score functions for the heuristic oracle:
hook (asset), alignment (copy vs visual), fit (targeting), clarity (CTA), match (awareness stage).
Every function is deterministic in its inputs.
"""
import re
from typing import Iterable, Optional, Set

from app.services.scoring.oracle import AssetInput, TargetingContext, clamp

TOKEN_RE = re.compile(r"[a-z0-9]+")

STOPWORDS = {
    "the", "and", "for", "you", "your", "with", "our", "are", "this", "that", "from", "have",
    "was", "but", "not", "all", "can", "get", "now", "out", "more", "new", "img", "image",
    "video", "final", "copy", "jpg", "jpeg", "png", "mp4", "mov", "gif", "webp",
}

ACTION_VERBS = re.compile(
    r"\b(get|buy|start|try|learn|sign|order|shop|book|download|subscribe|apply|contact|watch|discover|join|register|install|donate|call|claim|see|request)\b",
    re.I,
)
URGENCY = re.compile(r"\b(now|today|limited)\b", re.I)

# Visual descriptors that tend to stop the scroll
HOOK_VISUAL_PATTERNS = re.compile(
    r"\b(before|after|face|person|people|ugc|testimonial|demo|unboxing|reaction|closeup|close|bold|text|overlay|motion)\b",
    re.I,
)

# Awareness stage signals (TOFU / MOFU / BOFU)
STAGE_TOFU = re.compile(r"\b(learn|discover|curiosity|secret|what\s+most|why|did\s+you\s+know|tired\s+of|struggl\w*)\b", re.I)
STAGE_MOFU = re.compile(r"\b(how\s+it\s+works|see\s+results|reviews?|study|proof|compare|compared|vs\.?|guide|demo)\b", re.I)
STAGE_BOFU = re.compile(r"\b(buy|shop|order|subscribe|\d+%?\s*off|free\s+shipping|add\s+to\s+cart|limited|guarantee|discount|sale|code)\b", re.I)

STAGE_ORDER = {"TOFU": 0, "MOFU": 1, "BOFU": 2}

# Facebook CTA button type -> the awareness stage it asks the viewer to be in
CTA_STAGE = {
    "LEARN_MORE": "TOFU",
    "WATCH_MORE": "TOFU",
    "SEE_MORE": "TOFU",
    "LISTEN_NOW": "TOFU",
    "SIGN_UP": "MOFU",
    "SUBSCRIBE": "MOFU",
    "DOWNLOAD": "MOFU",
    "GET_QUOTE": "MOFU",
    "APPLY_NOW": "MOFU",
    "CONTACT_US": "MOFU",
    "BOOK_TRAVEL": "MOFU",
    "SHOP_NOW": "BOFU",
    "BUY_NOW": "BOFU",
    "ORDER_NOW": "BOFU",
    "GET_OFFER": "BOFU",
}


def tokenize(*texts: Optional[str]) -> Set[str]:
    """Lowercase word tokens of length >= 3, stopwords removed."""
    tokens: Set[str] = set()
    for text in texts:
        for tok in TOKEN_RE.findall((text or "").lower()):
            if len(tok) >= 3 and tok not in STOPWORDS:
                tokens.add(tok)
    return tokens


def _stem_match(a: Set[str], b: Set[str]) -> Set[str]:
    """Tokens of a that share a 5-char prefix (or equality for short words) with a token of b."""
    prefixes = {t[:5] for t in b}
    return {t for t in a if t in b or t[:5] in prefixes}


def asset_descriptors(asset: AssetInput) -> Set[str]:
    meta = asset.metadata or {}
    tags = meta.get("tags") or []
    filename_stem = (asset.filename or "").rsplit(".", 1)[0]
    return tokenize(filename_stem, meta.get("description"), " ".join(str(t) for t in tags))


def score_hook(asset: AssetInput) -> float:
    """Scroll-stopping potential of the creative from type and metadata."""
    meta = asset.metadata or {}
    score = 70.0 if asset.type == "video" else 65.0

    if asset.type == "video":
        duration = meta.get("duration")
        if isinstance(duration, (int, float)) and duration > 0:
            if duration <= 15:
                score += 15
            elif duration <= 30:
                score += 8
            elif duration > 60:
                score -= 10

    width, height = meta.get("width"), meta.get("height")
    if isinstance(width, (int, float)) and isinstance(height, (int, float)) and width > 0:
        if height >= width:  # square or vertical fills the mobile feed
            score += 10
        elif width / height > 1.9:
            score -= 5

    descriptor_text = " ".join(sorted(asset_descriptors(asset)))
    if HOOK_VISUAL_PATTERNS.search(descriptor_text):
        score += 5
    return clamp(score)


def score_alignment(asset: AssetInput, headline: str, body: str, angle: Optional[str] = None) -> float:
    """Thematic overlap between the copy and what the visual is about."""
    copy_tokens = tokenize(headline, body)
    visual_tokens = asset_descriptors(asset)
    if not copy_tokens:
        return 40.0

    if visual_tokens:
        overlap = len(_stem_match(visual_tokens, copy_tokens)) / len(visual_tokens)
        score = 50 + 40 * overlap
    else:
        score = 60.0  # nothing to compare against

    angle_tokens = tokenize(angle)
    if angle_tokens and _stem_match(angle_tokens, copy_tokens):
        score += 10
    return clamp(score)


def score_fit(targeting: TargetingContext) -> float:
    """How narrowly the targeting defines the audience."""
    score = 50.0
    if targeting.age_min is not None and targeting.age_max is not None:
        if targeting.age_max - targeting.age_min < 20:
            score += 10
    if targeting.interests:
        score += 10
    if targeting.locations:
        score += 10
    if targeting.behaviors:
        score += 5
    if len(targeting.genders) == 1:
        score += 5
    return clamp(score)


def cta_label(cta_type: str) -> str:
    """'SHOP_NOW' -> 'shop now'."""
    return " ".join((cta_type or "").replace("_", " ").lower().split())


def score_clarity(cta_type: str) -> float:
    """CTA wording carries a recognizable action verb; short and urgent is clearer."""
    label = cta_label(cta_type)
    if not label:
        return 30.0
    words = label.split()
    if ACTION_VERBS.search(label):
        score = 80.0
        if len(words) <= 3:
            score += 10
        if URGENCY.search(label):
            score += 5
    else:
        score = 45.0
        if len(words) <= 3:
            score += 10
    return clamp(score)


def detect_stage(text: str) -> str:
    """Weighted: BOFU > MOFU > TOFU by count of matches; no signal means TOFU."""
    if not (text or "").strip():
        return "TOFU"
    b = len(STAGE_BOFU.findall(text))
    m = len(STAGE_MOFU.findall(text))
    f = len(STAGE_TOFU.findall(text))
    if b == m == f == 0:
        return "TOFU"
    if b >= m and b >= f:
        return "BOFU"
    if m >= f:
        return "MOFU"
    return "TOFU"


def audience_stage(cta_type: str, targeting: TargetingContext) -> str:
    """Stage the audience is expected to be in: from the CTA, nudged up for warm behavioural audiences."""
    stage = CTA_STAGE.get((cta_type or "").upper(), "TOFU")
    if targeting.behaviors and stage == "TOFU":
        stage = "MOFU"
    return stage


def _mentions_any(text: str, phrases: Iterable[str]) -> bool:
    lowered = (text or "").lower()
    return any(p and p.lower() in lowered for p in phrases)


def score_match(headline: str, body: str, cta_type: str, targeting: TargetingContext) -> float:
    """Message awareness stage vs the audience's stage."""
    copy_text = f"{headline or ''}\n{body or ''}"
    distance = abs(STAGE_ORDER[detect_stage(copy_text)] - STAGE_ORDER[audience_stage(cta_type, targeting)])
    score = {0: 85.0, 1: 65.0, 2: 40.0}[distance]
    if targeting.interests and _mentions_any(copy_text, targeting.interests):
        score += 5
    return clamp(score)


def score_all(
    asset: AssetInput,
    headline: str,
    body: str,
    description: Optional[str],
    cta_type: str,
    targeting: TargetingContext,
) -> dict:
    # description is shown under the headline; it counts toward copy/visual alignment
    body_text = body if not description else f"{body}\n{description}"
    return {
        "hook": score_hook(asset),
        "alignment": score_alignment(asset, headline, body_text, targeting.angle),
        "fit": score_fit(targeting),
        "clarity": score_clarity(cta_type),
        "match": score_match(headline, body, cta_type, targeting),
    }
