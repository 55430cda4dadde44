"""
Boost price calculator.

Prices are in Chilean pesos (CLP). The calculation runs server side when the
payment link is created so the charged amount never comes from the client.
"""

import math
from typing import Dict, Tuple

from .errors import AppError, ErrorCode

# Price per division inside a tier
DIVISION_PRICES: Dict[str, int] = {
    "iron": 2000,
    "bronze": 2000,
    "silver": 2500,
    "gold": 3500,
    "platinum": 4500,
    "emerald": 6500,
    "diamond": 8500,
}

# Price to clear a whole tier (division IV to the next tier)
LEAGUE_COMPLETE_PRICES: Dict[str, int] = {
    "iron": 7000,
    "bronze": 7000,
    "silver": 9000,
    "gold": 12500,
    "platinum": 15000,
    "emerald": 24000,
    "diamond": 32000,
    "master": 32000,
    "grandmaster": 60000,
}

SERVER_MODIFIERS: Dict[str, float] = {
    "LAS": 1.0,
    "LAN": 1.15,
    "BR": 1.15,
    "NA": 1.25,
}

DUO_BOOST_MODIFIER = 1.20
PRIORITY_BOOST_MODIFIER = 1.15
CHAMPIONS_MODIFIER = 1.25
LANE_MODIFIER = 1.10
SUPPORT_SOLOQ_MODIFIER = 1.25
SUPPORT_FLEX_MODIFIER = 1.15

RANK_ORDER: Tuple[str, ...] = (
    "iron",
    "bronze",
    "silver",
    "gold",
    "platinum",
    "emerald",
    "diamond",
    "master",
    "grandmaster",
    "challenger",
)

APEX_TIERS = ("master", "grandmaster", "challenger")

RANK_TRANSLATIONS: Dict[str, str] = {
    "hierro": "iron",
    "bronce": "bronze",
    "plata": "silver",
    "oro": "gold",
    "platino": "platinum",
    "esmeralda": "emerald",
    "diamante": "diamond",
    "maestro": "master",
    "gran maestro": "grandmaster",
    "retador": "challenger",
}

# Discount on one start-tier division by current LP
LP_DISCOUNTS: Dict[str, float] = {
    "0-29": 0,
    "30-59": 0.05,
    "60-99": 0.1,
}

# Multiplier by LP gained per win
LP_GAIN_MODIFIERS: Dict[str, float] = {
    "1-19": 1.35,
    "20-25": 1,
    "26+": 0.95,
}

# Requesting at least this many specific champions triggers the champions surcharge
CHAMPION_POOL_SIZE = 5

LANES = ("none", "top", "jungle", "mid", "adc", "support")
QUEUE_TYPES = ("soloq", "flexq")

_ROMAN_DIVISIONS = {"i": 1, "ii": 2, "iii": 3, "iv": 4}

# Fixed prices between apex tiers
_APEX_ROUTES = {
    ("master", "grandmaster"): 32000,
    ("master", "challenger"): 92000,
    ("grandmaster", "challenger"): 60000,
}
_APEX_ENTRY = {"master": 0, "grandmaster": 32000, "challenger": 92000}


def js_round(value: float) -> int:
    """Round half up, matching JavaScript Math.round."""
    return int(math.floor(value + 0.5))


def parse_rank(rank_name: str) -> Tuple[str, int]:
    """
    Split a rank name into (tier, division).

    Accepts English or Spanish tier names and roman or numeric divisions.
    Apex tiers have division 0.

    Examples:
        >>> parse_rank("Gold IV")
        ('gold', 4)
        >>> parse_rank("Gran Maestro")
        ('grandmaster', 0)

    Raises:
        AppError: INVALID_RANK for unknown tiers or divisions
    """
    text = " ".join(str(rank_name or "").lower().split())
    if not text:
        raise AppError(ErrorCode.INVALID_RANK, "Rank is required")

    tier_text, rest = text, ""
    for spanish, english in RANK_TRANSLATIONS.items():
        if text == spanish or text.startswith(spanish + " "):
            tier_text, rest = english, text[len(spanish):].strip()
            break
    else:
        parts = text.split(" ", 1)
        tier_text = parts[0]
        rest = parts[1] if len(parts) > 1 else ""

    if tier_text not in RANK_ORDER:
        raise AppError(ErrorCode.INVALID_RANK, f"Unknown rank '{rank_name}'", {"rank": rank_name})

    if tier_text in APEX_TIERS:
        if rest:
            raise AppError(ErrorCode.INVALID_RANK, f"Rank '{rank_name}' has no divisions", {"rank": rank_name})
        return tier_text, 0

    if rest.isdigit():
        division = int(rest)
    else:
        division = _ROMAN_DIVISIONS.get(rest, 0)
    if division not in (1, 2, 3, 4):
        raise AppError(ErrorCode.INVALID_RANK, f"Rank '{rank_name}' needs a division I-IV", {"rank": rank_name})
    return tier_text, division


def _base_price(from_tier: str, from_div: int, to_tier: str, to_div: int) -> float:
    from_index = RANK_ORDER.index(from_tier)
    to_index = RANK_ORDER.index(to_tier)

    if from_index > to_index or (from_index == to_index and from_div < to_div):
        raise AppError(ErrorCode.INVALID_RANK, "Target rank must be higher than the current rank")

    if from_tier in APEX_TIERS or to_tier in APEX_TIERS:
        if (from_tier, to_tier) in _APEX_ROUTES:
            return _APEX_ROUTES[(from_tier, to_tier)]
        if from_tier in APEX_TIERS:
            raise AppError(ErrorCode.INVALID_RANK, "Target rank must be higher than the current rank")

        total = 0.0
        if from_div != 4:
            total += from_div * DIVISION_PRICES[from_tier]
        else:
            total += LEAGUE_COMPLETE_PRICES[from_tier]
        for tier in RANK_ORDER[from_index + 1 : RANK_ORDER.index("diamond") + 1]:
            total += LEAGUE_COMPLETE_PRICES[tier]
        return total + _APEX_ENTRY[to_tier]

    if from_index == to_index:
        return max(from_div - to_div, 0) * DIVISION_PRICES[from_tier]

    total = 0.0
    if from_div == 4:
        total += LEAGUE_COMPLETE_PRICES[from_tier]
    else:
        total += from_div * DIVISION_PRICES[from_tier]
    for tier in RANK_ORDER[from_index + 1 : to_index]:
        total += LEAGUE_COMPLETE_PRICES[tier]
    if to_div < 4:
        total += (4 - to_div) * DIVISION_PRICES[to_tier]
    return total


def calculate_price(
    from_rank: str,
    to_rank: str,
    lp_range: str = "0-29",
    selected_lane: str = "none",
    queue_type: str = "soloq",
    server: str = "LAS",
    lp_gain: str = "20-25",
    champions_selected: bool = False,
    offline_mode: bool = False,
    duo_boost: bool = False,
    priority_boost: bool = False,
) -> int:
    """
    Calculate the boost price in CLP.

    Modifiers apply in this order: LP discount, LP gain, lane, champions,
    server, duo, priority. Offline mode is free.

    Args:
        from_rank: Current rank, e.g. "Gold IV" or "Oro IV"
        to_rank: Desired rank
        lp_range: Current LP bucket ("0-29", "30-59", "60-99")
        selected_lane: Preferred lane or "none"
        queue_type: "soloq" or "flexq"
        server: LAS, LAN, BR or NA
        lp_gain: LP gained per win bucket ("1-19", "20-25", "26+")
        champions_selected: Whether specific champions were requested
        offline_mode: Appear offline while boosting (no charge)
        duo_boost: Play alongside the booster
        priority_boost: Jump the booster queue

    Returns:
        Price rounded to whole pesos

    Raises:
        AppError: For unknown ranks or options
    """
    if from_rank == to_rank:
        return 0

    from_tier, from_div = parse_rank(from_rank)
    to_tier, to_div = parse_rank(to_rank)
    if (from_tier, from_div) == (to_tier, to_div):
        return 0

    if lp_range not in LP_DISCOUNTS:
        raise AppError(ErrorCode.INVALID_INPUT, f"Unknown LP range '{lp_range}'")
    if lp_gain not in LP_GAIN_MODIFIERS:
        raise AppError(ErrorCode.INVALID_INPUT, f"Unknown LP gain '{lp_gain}'")
    if server not in SERVER_MODIFIERS:
        raise AppError(ErrorCode.INVALID_INPUT, f"Unknown server '{server}'")

    total = _base_price(from_tier, from_div, to_tier, to_div)

    lp_discount = LP_DISCOUNTS[lp_range]
    if lp_discount > 0 and from_tier in DIVISION_PRICES:
        total -= DIVISION_PRICES[from_tier] * lp_discount

    total *= LP_GAIN_MODIFIERS[lp_gain]

    if selected_lane != "none":
        lane_multiplier = LANE_MODIFIER
        if selected_lane == "support":
            lane_multiplier = SUPPORT_SOLOQ_MODIFIER if queue_type == "soloq" else SUPPORT_FLEX_MODIFIER
        total *= lane_multiplier

    if champions_selected:
        total *= CHAMPIONS_MODIFIER

    total *= SERVER_MODIFIERS[server]

    if duo_boost:
        total *= DUO_BOOST_MODIFIER

    if priority_boost:
        total *= PRIORITY_BOOST_MODIFIER

    return js_round(total)


def convert_clp_to_usd(clp_amount: float) -> str:
    """
    Convert a CLP price to the USD price shown to international customers.

    Adds the 5.4% card fee and the fixed 0.30 USD charge, then rounds to ten cents.

    Examples:
        >>> convert_clp_to_usd(7000)
        '7.60'
    """
    clp_with_fee = clp_amount * 1.054
    usd_amount = clp_with_fee / 1017.25
    final_usd = usd_amount + 0.30
    rounded = js_round(final_usd * 10) / 10
    return f"{rounded:.2f}"
