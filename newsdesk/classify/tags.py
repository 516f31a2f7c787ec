"""Keyword/regex classifiers for score tier, region and event category."""

from __future__ import annotations

import math
import re

from newsdesk.classify import register_classifier
from newsdesk.classify.base import BaseClassifier
from newsdesk.models import PushItem

# Feed name -> region. "Global" sources fall through to keyword detection.
SOURCE_REGIONS = {
    "SEC-EDGAR-Latest": "US",
    "Federal-Reserve-News": "US",
    "WSJ-Markets": "US",
    "MarketWatch-Top": "US",
    "Yahoo-Finance": "US",
    "Seeking-Alpha": "US",
    "Benzinga": "US",
    "TechCrunch": "US",
    "The-Verge": "US",
    "Reuters-Business": "Global",
    "FT-Companies": "Global",
    "Tier5-Regulatory": "US",
    "Tier4-Premium-Media": "Global",
    "Tier3-Industry-Aggregator": "US",
}

REGION_TAGS = {
    "US": "#US",
    "China": "#China",
    "HongKong": "#HongKong",
    "Europe": "#Europe",
    "UK": "#UK",
    "Japan": "#Japan",
    "Global": "#Global",
}

# Checked in order; first hit wins
REGION_KEYWORDS = [
    ("HongKong", re.compile(r"\bhong kong\b|\bhang seng\b|\bhkex\b", re.I)),
    ("China", re.compile(r"\bchina\b|\bchinese\b|\bbeijing\b|\bshanghai\b|\bpboc\b|\byuan\b", re.I)),
    ("Japan", re.compile(r"\bjapan(ese)?\b|\btokyo\b|\bnikkei\b|\bboj\b|\byen\b", re.I)),
    ("UK", re.compile(r"\bbritain\b|\bbritish\b|\blondon\b|\bftse\b|\bbank of england\b", re.I)),
    ("Europe", re.compile(r"\beurope(an)?\b|\beurozone\b|\becb\b|\beu\b|\bgermany\b|\bfrance\b", re.I)),
    ("US", re.compile(
        r"\bu\.s\.|\bunited states\b|\bwall street\b|\bfed\b|\bfederal reserve\b"
        r"|\bnasdaq\b|\bnyse\b|\bs&p 500\b|\bdow\b|\bsec\b",
        re.I,
    )),
]

EVENT_CATEGORIES = [
    ("#Earnings", re.compile(
        r"\bearnings?\b|\brevenue\b|\bprofits?\b|\beps\b|\bquarterly results\b|\bguidance\b", re.I)),
    ("#MergersAcquisitions", re.compile(
        r"\bmergers?\b|\bacquisitions?\b|\bacquires?\b|\bacquired\b|\btakeover\b|\bbuyout\b", re.I)),
    ("#MonetaryPolicy", re.compile(
        r"\bfed\b|\bfederal reserve\b|\bfomc\b|\binterest rates?\b|\brate (cut|hike)s?\b"
        r"|\bcentral bank\b|\becb\b|\bboj\b|\bpboc\b",
        re.I,
    )),
    ("#IPO", re.compile(r"\bipos?\b|\binitial public offering\b|\bgoes public\b", re.I)),
    ("#Legal", re.compile(
        r"\blawsuits?\b|\blitigation\b|\bsue[sd]?\b|\bsettlement\b|\bfraud\b|\bindict", re.I)),
    ("#ExecutiveChange", re.compile(
        r"\bceo\b|\bcfo\b|\bchief executive\b|\bsteps down\b|\bresign|\bappoint", re.I)),
    ("#Crisis", re.compile(
        r"\bbankrupt|\bchapter 11\b|\binsolven|\bdefaults?\b|\bcollapse|\bbailout\b", re.I)),
    ("#Buyback", re.compile(r"\bbuybacks?\b|\bshare repurchases?\b|\brepurchase program", re.I)),
    ("#Dividend", re.compile(r"\bdividends?\b", re.I)),
    ("#AnalystRating", re.compile(
        r"\bupgrade[sd]?\b|\bdowngrade[sd]?\b|\bprice target\b|\banalyst rating\b"
        r"|\boutperform\b|\bunderperform\b",
        re.I,
    )),
    ("#Regulation", re.compile(
        r"\bregulat|\bsec\b|\bantitrust\b|\bsanctions?\b|\bcompliance\b|\bprobe\b", re.I)),
    ("#ProductLaunch", re.compile(
        r"\blaunch(es|ed)?\b|\bunveil|\brolls? out\b|\bnew product\b|\bfda approval\b", re.I)),
    ("#Innovation", re.compile(
        r"\bbreakthrough\b|\bpatents?\b|\bartificial intelligence\b|\bai\b|\binnovation\b", re.I)),
    ("#MarketMove", re.compile(
        r"\bsell-?off\b|\brall(y|ies|ied)\b|\bsurge[sd]?\b|\bplunge[sd]?\b|\btumble[sd]?\b"
        r"|\bsoar(s|ed)?\b|\brecord high\b",
        re.I,
    )),
]


def _item_text(item: PushItem) -> str:
    return f"{item.title} {item.summary or ''}"


@register_classifier("score_tier")
class ScoreTierClassifier(BaseClassifier):
    """#ScoreN plus a severity tag for high scores."""

    @property
    def name(self) -> str:
        return "score_tier"

    def classify(self, item: PushItem) -> list[str]:
        score = item.composite_score or 0.0
        tags = [f"#Score{int(math.floor(score))}"]
        if score >= 9:
            tags.append("#Critical")
        elif score >= 7:
            tags.append("#Breaking")
        elif score >= 5:
            tags.append("#Important")
        return tags


@register_classifier("region")
class RegionClassifier(BaseClassifier):
    """Region from the source table, refined by keywords for global sources."""

    def __init__(self, source_regions: dict[str, str] | None = None):
        self.source_regions = source_regions if source_regions is not None else SOURCE_REGIONS

    @property
    def name(self) -> str:
        return "region"

    def detect(self, item: PushItem) -> str | None:
        """Known source region, then the feed region stored with the item, then keywords."""
        region = self.source_regions.get(item.source_name)
        if region and region != "Global":
            return region
        if item.region and item.region != "Global":
            return item.region

        text = _item_text(item)
        for candidate, pattern in REGION_KEYWORDS:
            if pattern.search(text):
                return candidate
        return region or item.region

    def classify(self, item: PushItem) -> list[str]:
        region = self.detect(item)
        tag = REGION_TAGS.get(region) if region else None
        return [tag] if tag else []


@register_classifier("event_category")
class EventCategoryClassifier(BaseClassifier):
    """Any subset of the event categories may fire."""

    @property
    def name(self) -> str:
        return "event_category"

    def classify(self, item: PushItem) -> list[str]:
        text = _item_text(item)
        return [tag for tag, pattern in EVENT_CATEGORIES if pattern.search(text)]


def build_hashtags(item: PushItem, classifiers: list[BaseClassifier] | None = None) -> str:
    """Join the output of every classifier into one hashtag line."""
    if classifiers is None:
        classifiers = [ScoreTierClassifier(), RegionClassifier(), EventCategoryClassifier()]
    tags: list[str] = []
    for classifier in classifiers:
        for tag in classifier.classify(item):
            if tag not in tags:
                tags.append(tag)
    return " ".join(tags)
