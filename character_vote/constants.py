"""
캐릭터 투표 시스템 상수 정의
"""

# 투표 종류
VOTE_LIKE = "like"
VOTE_DISLIKE = "dislike"
VOTE_TYPES = (VOTE_LIKE, VOTE_DISLIKE)

# 투표 종류별 점수 변화
VOTE_WEIGHTS = {
    VOTE_LIKE: 1,
    VOTE_DISLIKE: -1,
}

# Postgres 에러 코드
PG_UNIQUE_VIOLATION = "23505"
PG_UNDEFINED_COLUMN = "42703"

# 타임아웃 설정
VOTE_VIEW_TIMEOUT = 600  # 10분 (초 단위)

# 순위 메시지 자동 갱신 대상 최대 개수
MAX_TRACKED_RANKING_MESSAGES = 20

# 버튼 레이블
VOTE_LABELS = {
    VOTE_LIKE: "👍 좋아요",
    VOTE_DISLIKE: "👎 싫어요",
}

# 로그인 / 가입 안내 링크
DISCORD_LOGIN_URL = "https://discord.com/login"
DISCORD_REGISTER_URL = "https://discord.com/register"

# 스키마 안내 SQL
VOTES_SCHEMA_SQL = (
    "create table if not exists public.votes (\n"
    "  id bigint generated always as identity primary key,\n"
    "  character_id text not null,\n"
    "  vote_type text not null check (vote_type in ('like', 'dislike')),\n"
    "  user_id text not null,\n"
    "  created_at timestamptz not null default now(),\n"
    "  unique (character_id, user_id)\n"
    ");"
)

# 에러 메시지
SCHEMA_ERROR_MESSAGE = (
    "🚨 **데이터베이스 오류**: votes 테이블에 필요한 컬럼(user_id 등)이 없습니다.\n"
    "Supabase SQL 에디터에서 아래 명령을 실행해주세요.\n"
    f"```sql\n{VOTES_SCHEMA_SQL}\n```"
)
RANKING_ERROR_MESSAGE = "전체 통계를 불러올 수 없습니다."
