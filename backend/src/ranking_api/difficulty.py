"""Difficulty names shared by every ranking service ('easy' ... 'expertPlus')."""

from typing import Any, Optional

# ScoreSaber encodes difficulties as odd integers
_SCORESABER_DIFFICULTIES = {
    1: "easy",
    3: "normal",
    5: "hard",
    7: "expert",
    9: "expertPlus",
}

_NAMED_DIFFICULTIES = {
    "easy": "easy",
    "normal": "normal",
    "hard": "hard",
    "expert": "expert",
    "expertplus": "expertPlus",
    "expert+": "expertPlus",
}


def normalize_difficulty(value: Any) -> Optional[str]:
    """Map a ScoreSaber integer, a raw '_ExpertPlus_SoloStandard' string or a plain name to one spelling."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return _SCORESABER_DIFFICULTIES.get(value)
    name = str(value).strip()
    if name.startswith("_"):
        # '_ExpertPlus_SoloStandard' -> 'ExpertPlus'
        name = name.split("_")[1] if name.count("_") >= 2 else name.lstrip("_")
    return _NAMED_DIFFICULTIES.get(name.lower())
