"""
투표 저장소 예외 정의
"""


class VoteStoreError(Exception):
    """투표 저장소 요청 실패"""

    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        self.code = code


class DuplicateVoteError(VoteStoreError):
    """같은 사용자가 같은 캐릭터에 이미 투표함 (unique 제약 위반)"""


class SchemaError(VoteStoreError):
    """votes 테이블에 필요한 컬럼이 없음"""
