"""
투표 저장소

주요 클래스:
- VoteStore: 저장소 인터페이스
- SupabaseVoteStore: Supabase(Postgres) votes 테이블 + Realtime 구독
- InMemoryVoteStore: 로컬 실행/테스트용 메모리 저장소

모든 쓰기 에러는 VoteStoreError 계층으로 변환된다.
"""
import asyncio
import inspect
import itertools
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from postgrest.exceptions import APIError
from supabase import AsyncClient, acreate_client

from config import VOTES_TABLE, VOTES_SCHEMA, VOTES_CHANNEL, FETCH_PAGE_SIZE
from .constants import PG_UNIQUE_VIOLATION, PG_UNDEFINED_COLUMN
from .errors import VoteStoreError, DuplicateVoteError, SchemaError
from .models import Vote

logger = logging.getLogger(__name__)

InsertCallback = Callable[[], Any]


def translate_api_error(error: APIError) -> VoteStoreError:
    """PostgREST 에러를 저장소 예외로 변환"""
    code = getattr(error, "code", None)
    message = getattr(error, "message", None) or str(error)
    if code == PG_UNIQUE_VIOLATION:
        return DuplicateVoteError(message, code)
    if code == PG_UNDEFINED_COLUMN:
        return SchemaError(message, code)
    return VoteStoreError(message, code)


def _notify(callback: InsertCallback) -> None:
    """INSERT 알림 콜백 호출 (코루틴이면 태스크로 실행)"""
    result = callback()
    if inspect.isawaitable(result):
        asyncio.ensure_future(result)


class VoteStore:
    """투표 저장소 인터페이스"""

    async def fetch_user_votes(self, user_id: str) -> List[Vote]:
        """특정 사용자의 투표 전체"""
        raise NotImplementedError

    async def fetch_all_votes(self) -> List[Vote]:
        """모든 사용자의 투표 전체 (집계용)"""
        raise NotImplementedError

    async def insert_vote(self, vote: Vote) -> None:
        """
        투표 1건 추가

        Raises:
            DuplicateVoteError: 이미 같은 (사용자, 캐릭터) 투표가 있음
            SchemaError: 필요한 컬럼이 없음
            VoteStoreError: 그 외 실패
        """
        raise NotImplementedError

    async def subscribe_inserts(self, callback: InsertCallback) -> Any:
        """INSERT 발생 시 callback 호출 (payload 없음). 구독 핸들 반환"""
        raise NotImplementedError

    async def unsubscribe(self, handle: Any) -> None:
        raise NotImplementedError


class SupabaseVoteStore(VoteStore):
    """Supabase votes 테이블 저장소"""

    def __init__(self, url: str, key: str):
        self.url = url
        self.key = key
        self._client: Optional[AsyncClient] = None

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        """클라이언트 생성 (최초 1회)"""
        if self._client is None:
            self._client = await acreate_client(self.url, self.key)
            logger.info("Supabase 클라이언트 생성 완료")

    @property
    def client(self) -> AsyncClient:
        if self._client is None:
            raise VoteStoreError("Supabase 클라이언트가 연결되지 않았습니다.")
        return self._client

    async def _execute(self, query):
        try:
            return await query.execute()
        except APIError as e:
            raise translate_api_error(e) from e
        except VoteStoreError:
            raise
        except Exception as e:
            raise VoteStoreError(str(e)) from e

    async def fetch_user_votes(self, user_id: str) -> List[Vote]:
        response = await self._execute(
            self.client.table(VOTES_TABLE)
            .select("character_id, vote_type, user_id")
            .eq("user_id", user_id)
        )
        return [Vote.from_row(row) for row in response.data]

    async def fetch_all_votes(self) -> List[Vote]:
        votes: List[Vote] = []
        start = 0
        while True:
            response = await self._execute(
                self.client.table(VOTES_TABLE)
                .select("character_id, vote_type, user_id, created_at")
                .order("created_at")
                .order("id")
                .range(start, start + FETCH_PAGE_SIZE - 1)
            )
            rows = response.data or []
            votes.extend(Vote.from_row(row) for row in rows)
            if len(rows) < FETCH_PAGE_SIZE:
                break
            start += FETCH_PAGE_SIZE

        logger.debug(f"전체 투표 조회: {len(votes)}개")
        return votes

    async def insert_vote(self, vote: Vote) -> None:
        await self._execute(self.client.table(VOTES_TABLE).insert([vote.to_row()]))

    async def subscribe_inserts(self, callback: InsertCallback) -> Any:
        channel = self.client.channel(VOTES_CHANNEL)
        channel.on_postgres_changes(
            "INSERT",
            schema=VOTES_SCHEMA,
            table=VOTES_TABLE,
            callback=lambda payload: _notify(callback)
        )
        await channel.subscribe()
        logger.info(f"Realtime 구독 시작: {VOTES_SCHEMA}.{VOTES_TABLE} INSERT")
        return channel

    async def unsubscribe(self, handle: Any) -> None:
        await self.client.remove_channel(handle)
        logger.info("Realtime 구독 해제")


class InMemoryVoteStore(VoteStore):
    """메모리 저장소 ((character_id, user_id) unique 제약 포함)"""

    def __init__(self, votes: Optional[List[Vote]] = None):
        self._votes: List[Vote] = []
        self._keys: set[Tuple[str, str]] = set()
        self._subscribers: Dict[int, InsertCallback] = {}
        self._handles = itertools.count(1)
        for vote in votes or []:
            self._append(vote)

    def _append(self, vote: Vote) -> None:
        pair = (vote.character_key, vote.user_id)
        if pair in self._keys:
            raise DuplicateVoteError(
                f"duplicate key value violates unique constraint: {pair}",
                PG_UNIQUE_VIOLATION
            )
        if vote.created_at is None:
            vote = Vote(vote.character_key, vote.vote_type, vote.user_id, datetime.now(timezone.utc))
        self._keys.add(pair)
        self._votes.append(vote)

    async def fetch_user_votes(self, user_id: str) -> List[Vote]:
        return [v for v in self._votes if v.user_id == user_id]

    async def fetch_all_votes(self) -> List[Vote]:
        return list(self._votes)

    async def insert_vote(self, vote: Vote) -> None:
        self._append(vote)
        for callback in list(self._subscribers.values()):
            _notify(callback)

    async def subscribe_inserts(self, callback: InsertCallback) -> int:
        handle = next(self._handles)
        self._subscribers[handle] = callback
        return handle

    async def unsubscribe(self, handle: int) -> None:
        self._subscribers.pop(handle, None)
