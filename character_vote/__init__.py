"""
캐릭터 투표 시스템

주요 기능:
- 캐릭터 카드를 순서대로 보여주며 좋아요/싫어요 투표 (이미 투표한 캐릭터는 건너뜀)
- 투표 저장 (Supabase votes 테이블)
- 전체 투표 기반 순점수 순위 (새 투표마다 자동 갱신)

공개 API:
- Character / load_catalog: 캐릭터 카탈로그
- VotingFlow / VotingFlowManager: 사용자별 투표 진행 상태
- RankingBoard: 전체 순위
- SupabaseVoteStore / InMemoryVoteStore: 투표 저장소
- MainPanelView: 투표 / 통계 탭 패널
- open_vote_tab / open_stats_tab: 탭 진입 함수
- create_panel_embed: 패널 Embed 생성
- RankingMessageTracker: 순위 메시지 자동 갱신
"""

from .catalog import Character, CatalogError, character_key, load_catalog
from .models import Vote, VotingFlow, VotingFlowManager, FlowState, VoteOutcome
from .ranking import RankingBoard, Rankings, calculate_scores, build_rankings
from .store import VoteStore, SupabaseVoteStore, InMemoryVoteStore
from .views import MainPanelView, open_vote_tab, open_stats_tab
from .embeds import create_panel_embed
from .utils import RankingMessageTracker

__all__ = [
    # 카탈로그
    "Character",
    "CatalogError",
    "character_key",
    "load_catalog",

    # 데이터 모델
    "Vote",
    "VotingFlow",
    "VotingFlowManager",
    "FlowState",
    "VoteOutcome",

    # 순위
    "RankingBoard",
    "Rankings",
    "calculate_scores",
    "build_rankings",

    # 저장소
    "VoteStore",
    "SupabaseVoteStore",
    "InMemoryVoteStore",

    # UI 컴포넌트
    "MainPanelView",
    "open_vote_tab",
    "open_stats_tab",
    "create_panel_embed",

    # 유틸리티
    "RankingMessageTracker",
]
