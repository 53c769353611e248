"""Privacy metrics reported when a mix completes.

Both metrics are pure functions of the request's privacy settings.
"""

from typing import Optional

from lnmixer.models import MixRequest, PrivacyLevel

ANONYMITY_BASE: dict[PrivacyLevel, int] = {
    PrivacyLevel.STANDARD: 20,
    PrivacyLevel.ENHANCED: 60,
    PrivacyLevel.MAXIMUM: 120,
}
RANDOMIZED_MINT_BONUS = 10

SCORE_BASE = 50
SCORE_SET_CAP = 40
SCORE_MAX = 100
TIME_DELAY_POINTS = 3
SPLIT_OUTPUT_POINTS = 3
RANDOMIZED_MINT_POINTS = 2
AMOUNT_OBFUSCATION_POINTS = 1
DECOY_TX_POINTS = 1


def anonymity_set_size(request: MixRequest) -> int:
    """Estimated number of participants this configuration hides among."""
    size = ANONYMITY_BASE[request.privacy_level]
    if request.enable_split_outputs:
        size += request.split_count
    if request.enable_randomized_mints:
        size += RANDOMIZED_MINT_BONUS
    return size


def privacy_score(request: MixRequest, set_size: Optional[int] = None) -> int:
    """Score from 0 to 100 combining the anonymity set and enabled features."""
    if set_size is None:
        set_size = anonymity_set_size(request)

    score = SCORE_BASE + min(SCORE_SET_CAP, set_size // 4)
    if request.enable_time_delays:
        score += TIME_DELAY_POINTS
    if request.enable_split_outputs and request.split_count > 1:
        score += SPLIT_OUTPUT_POINTS
    if request.enable_randomized_mints:
        score += RANDOMIZED_MINT_POINTS
    if request.enable_amount_obfuscation:
        score += AMOUNT_OBFUSCATION_POINTS
    if request.enable_decoy_tx:
        score += DECOY_TX_POINTS
    return min(SCORE_MAX, score)
