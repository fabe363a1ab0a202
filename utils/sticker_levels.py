"""
Sticker reward table and point arithmetic
"""

from dataclasses import dataclass, asdict
from typing import Dict, List, Mapping, Union

from models import StickerLevel


@dataclass(frozen=True)
class StickerMeta:
    level: StickerLevel
    order: int
    name: str
    emoji: str
    points: int

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["level"] = self.level.value
        return data


STICKER_LEVELS: Dict[StickerLevel, StickerMeta] = {
    StickerLevel.SEED: StickerMeta(StickerLevel.SEED, 1, "씨앗", "🌱", 10),
    StickerLevel.BLOOM: StickerMeta(StickerLevel.BLOOM, 2, "꽃봉오리", "🌸", 20),
    StickerLevel.SHOOTING_STAR: StickerMeta(StickerLevel.SHOOTING_STAR, 3, "별똥별", "🌠", 30),
    StickerLevel.ROCKET: StickerMeta(StickerLevel.ROCKET, 4, "로켓", "🚀", 50),
    StickerLevel.SATELLITE: StickerMeta(StickerLevel.SATELLITE, 5, "위성", "🛰️", 70),
    StickerLevel.AURORA: StickerMeta(StickerLevel.AURORA, 6, "오로라", "🌌", 85),
    StickerLevel.TO_THE_MOON: StickerMeta(StickerLevel.TO_THE_MOON, 7, "투더문", "🌕", 100),
}

STICKER_LEVELS_LIST: List[StickerMeta] = sorted(STICKER_LEVELS.values(), key=lambda meta: meta.order)


def get_level_meta(level: Union[StickerLevel, str]) -> StickerMeta:
    """Raises ValueError for names outside the reward table"""
    return STICKER_LEVELS[StickerLevel(level)]


def calc_total_points(level_counts: Mapping[Union[StickerLevel, str], int]) -> int:
    """Sum of count x point value; unknown levels contribute nothing"""
    total = 0
    for level, count in level_counts.items():
        try:
            meta = get_level_meta(level)
        except ValueError:
            continue
        total += meta.points * (count or 0)
    return total


def zero_filled_counts(level_counts: Mapping[Union[StickerLevel, str], int]) -> List[Dict]:
    """Every level in reward order with its count, 0 when absent"""
    counts = {StickerLevel(level).value: count for level, count in level_counts.items()}
    return [{**meta.to_dict(), "count": counts.get(meta.level.value, 0)} for meta in STICKER_LEVELS_LIST]
