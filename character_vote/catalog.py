"""
캐릭터 카탈로그

주요 기능:
- 캐릭터 데이터 로드 (JSON, 시작 시 1회)
- 캐릭터 키 생성
- 다음 미투표 캐릭터 위치 탐색
"""
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Union

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("firstName", "lastName", "image")


class CatalogError(ValueError):
    """카탈로그 형식 오류"""


@dataclass(frozen=True)
class Character:
    """캐릭터 데이터 (불변)"""
    first_name: str
    last_name: str
    image: str

    @property
    def key(self) -> str:
        return character_key(self)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


def character_key(character: Character) -> str:
    """캐릭터 식별 키 (이름-성)"""
    return f"{character.first_name}-{character.last_name}"


def parse_catalog(raw: Iterable[dict]) -> List[Character]:
    """
    JSON 객체 목록을 캐릭터 목록으로 변환

    Args:
        raw: {firstName, lastName, image} 객체 목록

    Returns:
        순서가 유지된 캐릭터 목록

    Raises:
        CatalogError: 필드가 빠져 있거나 객체가 아닌 항목이 있는 경우
    """
    characters = []
    for idx, item in enumerate(raw):
        if not isinstance(item, dict):
            raise CatalogError(f"{idx}번째 항목이 객체가 아닙니다: {item!r}")
        missing = [name for name in REQUIRED_FIELDS if name not in item]
        if missing:
            raise CatalogError(f"{idx}번째 캐릭터에 필드가 없습니다: {', '.join(missing)}")
        characters.append(Character(
            first_name=str(item["firstName"]),
            last_name=str(item["lastName"]),
            image=str(item["image"])
        ))
    return characters


def load_catalog(path: Union[str, Path]) -> List[Character]:
    """카탈로그 파일 로드"""
    with open(path, encoding="utf-8") as f:
        raw = json.load(f)

    if not isinstance(raw, list):
        raise CatalogError("카탈로그는 배열이어야 합니다.")

    characters = parse_catalog(raw)
    logger.info(f"캐릭터 카탈로그 로드: {len(characters)}명 ({path})")
    return characters


def first_unvoted_index(
    catalog: List[Character],
    voted_keys: Iterable[str],
    start: int = 0
) -> Optional[int]:
    """
    start부터 카탈로그 순서대로 탐색하여 아직 투표하지 않은 첫 위치 반환

    Args:
        catalog: 캐릭터 목록
        voted_keys: 이미 투표한 캐릭터 키
        start: 탐색 시작 위치

    Returns:
        위치 (남은 캐릭터가 없으면 None)
    """
    voted = voted_keys if isinstance(voted_keys, (set, frozenset)) else set(voted_keys)
    index = max(start, 0)
    while index < len(catalog) and character_key(catalog[index]) in voted:
        index += 1
    return index if index < len(catalog) else None
