from config.settings import (
    ARTIST_WEIGHT,
    DURATION_TOLERANCE_RATIO,
    DURATION_TOLERANCE_SECONDS,
    NAME_WEIGHT,
)


def normalize_text(value):
    """Lowercase and keep only letters, digits and CJK ideographs."""
    if not value:
        return ""
    return "".join(ch for ch in str(value).lower() if ch.isalnum())


def edit_distance(a, b):
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)
    # Two rolling rows sized by the shorter string.
    prev = list(range(len(b) + 1))
    cur = [0] * (len(b) + 1)
    for i, ca in enumerate(a, start=1):
        cur[0] = i
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            cur[j] = min(prev[j] + 1, cur[j - 1] + 1, prev[j - 1] + cost)
        prev, cur = cur, prev
    return prev[len(b)]


def similarity_score(a, b):
    if a == b:
        return 1.0 if a else 0.0
    if not a or not b:
        return 0.0
    max_len = max(len(a), len(b))
    dist = edit_distance(a, b)
    if dist >= max_len:
        return 0.0
    return 1.0 - dist / max_len


def song_similarity(name, artist, candidate_name, candidate_artist):
    name_a = normalize_text(name)
    name_b = normalize_text(candidate_name)
    if not name_a or not name_b:
        return 0.0
    name_sim = similarity_score(name_a, name_b)

    artist_a = normalize_text(artist)
    artist_b = normalize_text(candidate_artist)
    if not artist_a or not artist_b:
        return name_sim
    artist_sim = similarity_score(artist_a, artist_b)
    return NAME_WEIGHT * name_sim + ARTIST_WEIGHT * artist_sim


def is_duration_close(expected_sec, candidate_sec):
    """Adaptive duration gate; unknown (non-positive) durations always pass."""
    try:
        a = int(expected_sec or 0)
        b = int(candidate_sec or 0)
    except (TypeError, ValueError):
        return True
    if a <= 0 or b <= 0:
        return True
    diff = abs(a - b)
    if diff <= DURATION_TOLERANCE_SECONDS:
        return True
    max_allowed = max(DURATION_TOLERANCE_SECONDS, int(a * DURATION_TOLERANCE_RATIO))
    return diff <= max_allowed


def rank_candidates(candidates):
    # Stable: equal (score, diff) pairs keep their collection order.
    return sorted(candidates, key=lambda c: (-c.score, c.duration_diff))
