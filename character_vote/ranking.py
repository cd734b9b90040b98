"""
캐릭터 순위 집계

주요 기능:
- 순점수 계산 (좋아요 - 싫어요, 전체 사용자 기준)
- 호감/비호감/중립 분류
- RankingBoard: 최신 순위 보관 및 새로고침 (Realtime 알림마다 전체 재계산)
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, TYPE_CHECKING

from config import LOG_MESSAGES
from .catalog import Character, character_key
from .constants import VOTE_WEIGHTS, RANKING_ERROR_MESSAGE
from .models import Vote

if TYPE_CHECKING:
    from .store import VoteStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RankedCharacter:
    character: Character
    score: int


@dataclass
class Rankings:
    """순위 분류 결과"""
    beloved: List[RankedCharacter] = field(default_factory=list)
    hated: List[RankedCharacter] = field(default_factory=list)
    neutral: List[RankedCharacter] = field(default_factory=list)


def calculate_scores(votes: Iterable[Vote]) -> Dict[str, int]:
    """
    캐릭터별 순점수 계산

    Args:
        votes: 전체 투표 목록

    Returns:
        {캐릭터 키: 좋아요 수 - 싫어요 수}
    """
    scores: Dict[str, int] = {}
    for vote in votes:
        scores.setdefault(vote.character_key, 0)
        scores[vote.character_key] += VOTE_WEIGHTS.get(vote.vote_type, 0)
    return scores


def build_rankings(catalog: List[Character], scores: Dict[str, int]) -> Rankings:
    """
    카탈로그 전체를 점수와 합쳐 분류

    - beloved: 점수 > 0, 내림차순
    - hated: 점수 < 0, 오름차순 (가장 낮은 점수 먼저)
    - neutral: 점수 == 0, 카탈로그 순서

    동점은 카탈로그 순서 유지 (안정 정렬)
    """
    ranked = [RankedCharacter(c, scores.get(character_key(c), 0)) for c in catalog]

    beloved = sorted((r for r in ranked if r.score > 0), key=lambda r: r.score, reverse=True)
    hated = sorted((r for r in ranked if r.score < 0), key=lambda r: r.score)
    neutral = [r for r in ranked if r.score == 0]

    return Rankings(beloved=beloved, hated=hated, neutral=neutral)


def rank_votes(catalog: List[Character], votes: Iterable[Vote]) -> Rankings:
    return build_rankings(catalog, calculate_scores(votes))


RankingListener = Callable[["RankingBoard"], Awaitable[None]]


class RankingBoard:
    """
    전체 순위 보관 및 새로고침

    - refresh(): 전체 투표를 다시 가져와 재계산
    - request_refresh(): Realtime 알림용. 진행 중인 새로고침이 있으면
      끝난 뒤 한 번만 더 실행 (여러 알림은 하나로 합침)
    - 응답 순서가 뒤바뀌면 가장 나중에 요청한 결과만 반영
    """

    def __init__(self, catalog: List[Character], store: "VoteStore"):
        self.catalog = catalog
        self.store = store
        self.rankings = Rankings()
        self.loading = True
        self.error: Optional[str] = None
        self.vote_count = 0

        self._issued = 0
        self._applied = 0
        self._pending_task: Optional[asyncio.Task] = None
        self._dirty = False
        self._listeners: List[RankingListener] = []

    def add_listener(self, listener: RankingListener) -> None:
        """새로고침 결과가 반영될 때마다 호출할 콜백 등록"""
        self._listeners.append(listener)

    async def refresh(self) -> bool:
        """
        전체 투표 재조회 및 순위 재계산

        Returns:
            결과가 반영되었으면 True (더 새로운 요청에 밀려 버려지면 False)
        """
        self._issued += 1
        ticket = self._issued

        try:
            votes = await self.store.fetch_all_votes()
        except Exception as e:
            if ticket < self._applied:
                return False
            logger.error(f"❌ 통계 조회 실패: {e}", exc_info=True)
            self._applied = ticket
            self.error = RANKING_ERROR_MESSAGE
            self.loading = False
            await self._notify_listeners()
            return True

        if ticket < self._applied:
            logger.debug(LOG_MESSAGES['ranking_stale'].format(ticket=ticket, applied=self._applied))
            return False

        self._applied = ticket
        self.rankings = rank_votes(self.catalog, votes)
        self.vote_count = len(votes)
        self.error = None
        self.loading = False
        logger.info(LOG_MESSAGES['ranking_refreshed'].format(count=len(votes)))
        await self._notify_listeners()
        return True

    def request_refresh(self) -> Optional[asyncio.Task]:
        """
        새로고침 예약 (Realtime INSERT 알림 콜백)

        Returns:
            새로 시작된 태스크 (이미 진행 중이면 None)
        """
        if self._pending_task is not None and not self._pending_task.done():
            self._dirty = True
            return None
        self._pending_task = asyncio.ensure_future(self._drain())
        return self._pending_task

    async def wait_idle(self) -> None:
        """예약된 새로고침이 모두 끝날 때까지 대기"""
        while self._pending_task is not None and not self._pending_task.done():
            await self._pending_task

    async def _drain(self) -> None:
        while True:
            self._dirty = False
            await self.refresh()
            if not self._dirty:
                break

    async def _notify_listeners(self) -> None:
        for listener in list(self._listeners):
            try:
                await listener(self)
            except Exception as e:
                logger.warning(f"순위 갱신 알림 실패: {e}")
