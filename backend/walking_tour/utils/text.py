"""String similarity used to spot the same place under slightly different names."""

from rapidfuzz.distance import Levenshtein


def name_similarity(name1: str, name2: str) -> float:
    """Normalized similarity in [0, 1]; 1.0 means identical ignoring case.

    Computed as ``1 - edit_distance / longer_length``. Two empty names count
    as identical.
    """
    max_len = max(len(name1), len(name2))
    if max_len == 0:
        return 1.0
    distance = Levenshtein.distance(name1.lower(), name2.lower())
    return 1.0 - distance / max_len
