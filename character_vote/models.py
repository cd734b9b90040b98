"""
캐릭터 투표 시스템 데이터 모델

주요 클래스:
- Vote: 투표 레코드
- VotingFlow: 사용자 1명의 투표 진행 상태 (상태 머신)
- VotingFlowManager: 사용자별 투표 세션 관리자

진행 규칙:
- 카탈로그 순서대로, 이미 투표한 캐릭터는 건너뛴다
- 투표하면 저장소 응답을 기다리지 않고 먼저 다음 캐릭터로 넘어간다 (낙관적 업데이트)
- 저장 실패는 되돌리지 않는다 (재시도 없음)
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Set, FrozenSet, Union

from config import LOG_MESSAGES
from .catalog import Character, character_key, first_unvoted_index
from .constants import VOTE_TYPES
from .errors import VoteStoreError, DuplicateVoteError, SchemaError
from .identity import Identity

if TYPE_CHECKING:
    from .store import VoteStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Vote:
    """투표 레코드"""
    character_key: str
    vote_type: str
    user_id: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: dict) -> "Vote":
        """votes 테이블 행을 Vote로 변환 (조회하지 않은 컬럼은 빈 값)"""
        created_at = row.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
        return cls(
            character_key=row["character_id"],
            vote_type=row.get("vote_type", ""),
            user_id=row.get("user_id", ""),
            created_at=created_at
        )

    def to_row(self) -> dict:
        """INSERT용 행 (created_at은 DB 기본값 사용)"""
        return {
            "character_id": self.character_key,
            "vote_type": self.vote_type,
            "user_id": self.user_id,
        }


@dataclass(frozen=True)
class PendingVote:
    """화면은 이미 넘어갔지만 아직 저장되지 않은 투표"""
    character_key: str
    vote_type: str
    user_id: str

    def to_vote(self) -> Vote:
        return Vote(self.character_key, self.vote_type, self.user_id)


class FlowState(Enum):
    LOADING = "loading"
    UNAUTHENTICATED = "unauthenticated"
    AWAITING_FIRST_INDEX = "awaiting_first_index"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


class VoteOutcome(Enum):
    """투표 저장 결과"""
    CONFIRMED = "confirmed"
    DUPLICATE = "duplicate"
    SCHEMA_ERROR = "schema_error"
    FAILED = "failed"


def classify_store_error(error: Exception) -> VoteOutcome:
    """저장 실패 예외를 결과 종류로 분류"""
    if isinstance(error, DuplicateVoteError):
        return VoteOutcome.DUPLICATE
    if isinstance(error, SchemaError):
        return VoteOutcome.SCHEMA_ERROR
    return VoteOutcome.FAILED


def reconcile(
    voted_keys: Iterable[str],
    character_key: str,
    outcome: VoteOutcome
) -> FrozenSet[str]:
    """
    저장 결과를 투표 완료 집합에 반영 (순수 함수)

    - CONFIRMED: 키 추가 (이미 있으면 그대로)
    - 그 외: 변경 없음 (진행 상태도 되돌리지 않음)
    """
    keys = frozenset(voted_keys)
    if outcome is VoteOutcome.CONFIRMED:
        return keys | {character_key}
    return keys


class InvalidFlowState(RuntimeError):
    """현재 상태에서 허용되지 않는 동작"""


@dataclass
class VotingFlow:
    """사용자 1명의 투표 진행 상태"""
    catalog: List[Character]
    identity: Optional[Identity] = None
    state: FlowState = FlowState.LOADING
    current_index: int = 0

    # 이미 투표한 캐릭터 키 (추가만 가능)
    voted_keys: Set[str] = field(default_factory=set)

    @property
    def user_id(self) -> Optional[str]:
        return self.identity.user_id if self.identity else None

    @property
    def is_complete(self) -> bool:
        return self.state is FlowState.COMPLETE

    @property
    def current_character(self) -> Optional[Character]:
        """현재 투표 대상 (진행 중이 아니거나 범위를 벗어나면 None)"""
        if self.state is not FlowState.IN_PROGRESS:
            return None
        if not 0 <= self.current_index < len(self.catalog):
            return None
        return self.catalog[self.current_index]

    @property
    def remaining(self) -> int:
        """남은 캐릭터 수 (현재 캐릭터 포함)"""
        if self.state is not FlowState.IN_PROGRESS:
            return 0
        return sum(
            1 for c in self.catalog[self.current_index:]
            if character_key(c) not in self.voted_keys
        )

    def resolve_identity(self, identity: Optional[Identity]) -> FlowState:
        """로그인 확인 결과 반영"""
        if identity is None:
            self.identity = None
            self.state = FlowState.UNAUTHENTICATED
        else:
            self.identity = identity
            self.state = FlowState.AWAITING_FIRST_INDEX
        return self.state

    def start(self, voted_keys: Iterable[str]) -> FlowState:
        """
        기존 투표 내역으로 첫 위치 결정

        Args:
            voted_keys: 저장소에서 가져온 이 사용자의 투표 키

        Returns:
            IN_PROGRESS 또는 COMPLETE
        """
        if self.state is not FlowState.AWAITING_FIRST_INDEX:
            raise InvalidFlowState(f"시작할 수 없는 상태입니다: {self.state.value}")

        self.voted_keys = set(voted_keys)
        self._move_to(first_unvoted_index(self.catalog, self.voted_keys, 0))
        return self.state

    async def load(self, store: "VoteStore") -> Optional[VoteOutcome]:
        """
        저장소에서 이 사용자의 투표 내역을 가져와 시작

        Returns:
            조회 실패 시 실패 종류 (성공하면 None)

        Note:
            조회에 실패해도 빈 내역으로 시작한다 (로딩 상태로 멈추지 않음)
        """
        voted: Set[str] = set()
        failure = None
        try:
            votes = await store.fetch_user_votes(self.user_id)
            voted = {v.character_key for v in votes}
        except VoteStoreError as e:
            failure = classify_store_error(e)
            logger.error(f"❌ 사용자 투표 내역 조회 실패 (user_id={self.user_id}): {e}", exc_info=True)

        self.start(voted)
        logger.info(
            f"투표 세션 시작: user_id={self.user_id}, 기존 투표 {len(voted)}개, "
            f"상태={self.state.value}, 위치={self.current_index}"
        )
        return failure

    def cast_vote(self, vote_type: str) -> PendingVote:
        """
        현재 캐릭터에 투표하고 바로 다음 캐릭터로 이동

        저장은 반환된 PendingVote를 submit()에 넘겨서 진행한다.

        Raises:
            ValueError: 알 수 없는 투표 종류
            InvalidFlowState: 진행 중이 아니거나 대상 캐릭터가 없음
        """
        if vote_type not in VOTE_TYPES:
            raise ValueError(f"알 수 없는 투표 종류: {vote_type}")

        character = self.current_character
        if character is None:
            raise InvalidFlowState(f"투표할 캐릭터가 없습니다: {self.state.value}")

        key = character_key(character)
        # 저장 완료 전에 먼저 다음 캐릭터로 이동
        self._move_to(first_unvoted_index(self.catalog, self.voted_keys, self.current_index + 1))
        return PendingVote(character_key=key, vote_type=vote_type, user_id=self.user_id)

    async def submit(self, store: "VoteStore", pending: PendingVote) -> VoteOutcome:
        """
        투표 저장 및 결과 반영

        Returns:
            저장 결과 (SCHEMA_ERROR면 호출자가 사용자에게 경고 표시)
        """
        try:
            await store.insert_vote(pending.to_vote())
            outcome = VoteOutcome.CONFIRMED
        except VoteStoreError as e:
            outcome = classify_store_error(e)
            if outcome is VoteOutcome.DUPLICATE:
                logger.warning(LOG_MESSAGES['vote_duplicate'].format(
                    key=pending.character_key, user_id=pending.user_id
                ))
            else:
                logger.error(f"❌ 투표 저장 실패: {pending.character_key} - {e}", exc_info=True)

        self.voted_keys = set(reconcile(self.voted_keys, pending.character_key, outcome))
        if outcome is VoteOutcome.CONFIRMED:
            logger.info(LOG_MESSAGES['vote_saved'].format(
                key=pending.character_key, vote_type=pending.vote_type, user_id=pending.user_id
            ))
        return outcome

    def _move_to(self, index: Optional[int]) -> None:
        if index is None:
            self.state = FlowState.COMPLETE
        else:
            self.current_index = index
            self.state = FlowState.IN_PROGRESS


class VotingFlowManager:
    """사용자별 투표 세션 관리자"""

    def __init__(self, catalog: List[Character]):
        self.catalog = catalog
        # {user_id: VotingFlow}
        self.sessions: Dict[str, VotingFlow] = {}

    def start_session(self, identity: Optional[Identity]) -> VotingFlow:
        """
        새 투표 세션 생성 (기존 세션은 교체)

        Args:
            identity: 로그인한 사용자 (None이면 UNAUTHENTICATED 세션, 저장하지 않음)

        Returns:
            생성된 세션
        """
        flow = VotingFlow(catalog=self.catalog)
        flow.resolve_identity(identity)
        if identity is not None:
            self.sessions[identity.user_id] = flow
        return flow

    def get_session(self, user_id: Union[str, int]) -> Optional[VotingFlow]:
        return self.sessions.get(str(user_id))

    def end_session(self, user_id: Union[str, int]) -> bool:
        """세션 종료 (세션이 없으면 False)"""
        return self.sessions.pop(str(user_id), None) is not None

    def release_if_complete(self, flow: VotingFlow) -> bool:
        """완료된 세션 정리 (이미 새 세션으로 교체되었으면 그대로 둠)"""
        if not flow.is_complete or self.get_session(flow.user_id) is not flow:
            return False
        return self.end_session(flow.user_id)
