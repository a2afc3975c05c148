"""Synthetic lifecycle metric datasets for local development.

Each generator returns the JSON-array records the ``/api/lifecycle/{metric}``
endpoint would return for a query key. Output is deterministic per key: the
RNG is seeded from the key digest, so the same filters always render the same
numbers while different filters visibly change them.

Baselines follow the reference dashboard mock data; the selected channels
restrict channel-keyed datasets and the segment scales volumes.
"""

from __future__ import annotations

import random
from datetime import date, timedelta
from typing import Callable, Dict, List

from lifecycle_attribution.foundation.query_key import QueryKey

Record = Dict[str, object]
Generator = Callable[[QueryKey, random.Random], List[Record]]

SEGMENT_VOLUME: Dict[str, float] = {
    "All": 1.0,
    "New Customers": 0.45,
    "Returning Customers": 0.55,
    "High Value": 0.2,
    "At Risk": 0.15,
}

PRODUCTS = ["Skincare Set", "Hair Care", "Makeup Kit", "Body Care", "Supplements"]
LTV_BUCKETS = ["$0-50", "$50-100", "$100-200", "$200-500", "$500+"]
CHURN_SEGMENTS = ["New", "Returning", "VIP", "At Risk", "Churned"]
RECENCY_BUCKETS = ["0-7 days", "8-30 days", "31-60 days", "61-90 days", "90+ days"]

_SANKEY_ENTRY = {"Google Ads": 1200, "Meta": 800, "Email": 400, "Organic": 650, "TikTok": 300, "Influencers": 220}

_ASSISTED = {
    "Google Ads": (125000, 85000),
    "Meta": (98000, 72000),
    "Email": (45000, 38000),
    "Organic": (67000, 89000),
    "TikTok": (34000, 23000),
    "Influencers": (21000, 17000),
}

_HOLDOUT = [
    ("Black Friday Email", 45000, 32000),
    ("Google Search Brand", 128000, 98000),
    ("Meta Retargeting", 67000, 56000),
    ("TikTok Creative Test", 23000, 21000),
]

_INCREMENTALITY = [
    ("Email Campaigns", 4.2, 12000),
    ("Google Search", 3.1, 45000),
    ("Meta Lookalike", 2.8, 28000),
    ("TikTok Ads", 1.9, 15000),
    ("Display Retargeting", 0.8, 18000),
]

_FUNNEL = [
    ("Visitors", 1.0, 45, 0.65),
    ("Product Views", 0.65, 78, 0.82),
    ("Add to Cart", 0.26, 120, 0.91),
    ("Checkout Started", 0.156, 240, 0.95),
    ("Purchase", 0.0936, 180, 1.0),
]


def seeded_rng(key: QueryKey) -> random.Random:
    """Return an RNG seeded from the key digest."""
    return random.Random(int(key.digest[:16], 16))


def _jitter(rng: random.Random, value: float, spread: float = 0.1) -> float:
    return value * (1 + rng.uniform(-spread, spread))


def _volume(key: QueryKey) -> float:
    # Volumes scale with the length of the window relative to the 30-day default.
    days = (key.end - key.start).days + 1
    return SEGMENT_VOLUME.get(key.segment, 1.0) * days / 31


def sankey(key: QueryKey, rng: random.Random) -> List[Record]:
    scale = _volume(key)
    records: List[Record] = []
    views = 0
    for channel in key.channels:
        value = int(_jitter(rng, _SANKEY_ENTRY.get(channel, 250)) * scale)
        views += value
        records.append({"source": channel, "target": "Product View", "value": value})
    if not records:
        return records
    cart = int(views * rng.uniform(0.35, 0.45))
    checkout = int(cart * rng.uniform(0.55, 0.65))
    purchase = int(checkout * rng.uniform(0.75, 0.85))
    records.extend(
        [
            {"source": "Product View", "target": "Add to Cart", "value": cart},
            {"source": "Product View", "target": "Exit", "value": views - cart},
            {"source": "Add to Cart", "target": "Checkout", "value": checkout},
            {"source": "Add to Cart", "target": "Exit", "value": cart - checkout},
            {"source": "Checkout", "target": "Purchase", "value": purchase},
            {"source": "Checkout", "target": "Exit", "value": checkout - purchase},
        ]
    )
    return records


def assisted_revenue(key: QueryKey, rng: random.Random) -> List[Record]:
    scale = _volume(key)
    return [
        {
            "channel": channel,
            "assistedRevenue": round(_jitter(rng, _ASSISTED[channel][0]) * scale),
            "lastClickRevenue": round(_jitter(rng, _ASSISTED[channel][1]) * scale),
        }
        for channel in key.channels
        if channel in _ASSISTED
    ]


def holdout_lift(key: QueryKey, rng: random.Random) -> List[Record]:
    scale = _volume(key)
    records: List[Record] = []
    for campaign, exposed, holdout in _HOLDOUT:
        exposed_rev = round(_jitter(rng, exposed) * scale)
        holdout_rev = round(_jitter(rng, holdout, 0.05) * scale)
        lift = round((exposed_rev - holdout_rev) / holdout_rev * 100, 1) if holdout_rev else 0.0
        records.append(
            {
                "campaign": campaign,
                "exposedRevenue": exposed_rev,
                "holdoutRevenue": holdout_rev,
                "lift": lift,
            }
        )
    return records


def incrementality_scoreboard(key: QueryKey, rng: random.Random) -> List[Record]:
    scale = _volume(key)
    records: List[Record] = []
    for channel, lift_per_dollar, spend in _INCREMENTALITY:
        lpd = round(_jitter(rng, lift_per_dollar), 1)
        spend_value = round(spend * scale)
        records.append(
            {
                "channel": channel,
                "liftPerDollar": lpd,
                "spend": spend_value,
                "incrementalRevenue": round(lpd * spend_value),
            }
        )
    return records


def funnel_metrics(key: QueryKey, rng: random.Random) -> List[Record]:
    visitors = int(_jitter(rng, 10000) * _volume(key))
    records: List[Record] = []
    for stage, rate, time_on_page, scroll in _FUNNEL:
        stage_rate = rate if rate == 1.0 else _jitter(rng, rate, 0.05)
        records.append(
            {
                "stage": stage,
                "users": int(visitors * stage_rate),
                "conversionRate": round(stage_rate * 100, 2),
                "timeOnPage": int(_jitter(rng, time_on_page)),
                "scrollDepth": round(min(1.0, _jitter(rng, scroll, 0.03)), 2),
            }
        )
    return records


def behavior_conversion(key: QueryKey, rng: random.Random) -> List[Record]:
    return [
        {
            "behaviorMetric": round(rng.uniform(0, 100), 2),
            "conversionProbability": round(rng.uniform(0, 100), 2),
            "sessions": rng.randrange(100, 1100),
        }
        for _ in range(50)
    ]


def ltv_by_source(key: QueryKey, rng: random.Random) -> List[Record]:
    days = min((key.end - key.start).days + 1, 90)
    first = key.end - timedelta(days=days - 1)
    return [
        {
            "date": (first + timedelta(days=offset)).isoformat(),
            "source": source,
            "LTV30": round(rng.uniform(20, 70), 2),
            "LTV60": round(rng.uniform(40, 120), 2),
            "LTV90": round(rng.uniform(70, 190), 2),
        }
        for source in key.channels
        for offset in range(days)
    ]


def product_ltv_matrix(key: QueryKey, rng: random.Random) -> List[Record]:
    scale = SEGMENT_VOLUME.get(key.segment, 1.0)
    return [
        {
            "firstProduct": product,
            "LTVBucket": bucket,
            "count": int(rng.randrange(50, 550) * scale),
        }
        for product in PRODUCTS
        for bucket in LTV_BUCKETS
    ]


def churn_risk(key: QueryKey, rng: random.Random) -> List[Record]:
    scale = SEGMENT_VOLUME.get(key.segment, 1.0)
    return [
        {
            "segment": segment,
            "recency": recency,
            "riskScore": round(rng.uniform(0, 100), 1),
            "customers": int(rng.randrange(100, 1100) * scale),
        }
        for segment in CHURN_SEGMENTS
        for recency in RECENCY_BUCKETS
    ]


def _month_start(day: date, months_back: int) -> date:
    index = day.year * 12 + day.month - 1 - months_back
    return date(index // 12, index % 12 + 1, 1)


def repeat_rate_forecast(key: QueryKey, rng: random.Random) -> List[Record]:
    return [
        {
            "cohortMonth": _month_start(key.end, back).strftime("%Y-%m"),
            "actualRate2nd": round(rng.uniform(15, 45), 1),
            "forecastRate2nd": round(rng.uniform(18, 53), 1),
            "customers": rng.randrange(500, 2500),
        }
        for back in range(11, -1, -1)
    ]


SYNTHETIC_GENERATORS: Dict[str, Generator] = {
    "sankey": sankey,
    "assistedRevenue": assisted_revenue,
    "holdoutLift": holdout_lift,
    "incrementalityScoreboard": incrementality_scoreboard,
    "funnelMetrics": funnel_metrics,
    "behaviorConversion": behavior_conversion,
    "ltvBySource": ltv_by_source,
    "productLTVMatrix": product_ltv_matrix,
    "churnRisk": churn_risk,
    "repeatRateForecast": repeat_rate_forecast,
}


def generate_metric(metric: str, key: QueryKey) -> List[Record]:
    """Generate the synthetic dataset for ``metric`` scoped to ``key``."""
    try:
        generator = SYNTHETIC_GENERATORS[metric]
    except KeyError:
        raise ValueError(f"No synthetic generator for metric {metric!r}") from None
    return generator(key, seeded_rng(key))
