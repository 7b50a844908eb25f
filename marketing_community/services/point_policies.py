"""
Point policies - what each community action costs or earns.

Sign convention: a positive point_cost is SPENT by the user, a negative
point_cost is EARNED. Zero means the action is tracked but free.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional


@dataclass(frozen=True)
class PointPolicy:
    action: str
    action_name: str  # Shown to the user as the ledger entry title
    point_cost: int
    description: str = ""

    @property
    def is_spend(self) -> bool:
        return self.point_cost > 0

    @property
    def is_earn(self) -> bool:
        return self.point_cost < 0


DEFAULT_POLICIES: List[PointPolicy] = [
    # Earning
    PointPolicy("daily_login", "출석 체크", -1, "하루 첫 로그인"),
    PointPolicy("post_create", "게시글 작성", -10, "커뮤니티 게시글 작성"),
    PointPolicy("comment_create", "댓글 작성", -2, "게시글 댓글 작성"),
    PointPolicy("question_create", "질문 작성", -5, "Q&A 질문 등록"),
    PointPolicy("answer_create", "답변 작성", -5, "Q&A 답변 등록"),
    PointPolicy("answer_accepted", "답변 채택", -20, "작성한 답변이 채택됨"),
    PointPolicy("template_upload", "템플릿 업로드", -15, "마케팅 템플릿 공유"),
    PointPolicy("event_review", "행사 후기 작성", -10, "참여한 행사 후기 작성"),
    # Spending
    PointPolicy("template_download", "템플릿 다운로드", 5, "프리미엄 템플릿 다운로드"),
    PointPolicy("question_bounty", "질문 현상금", 30, "질문에 현상금 걸기"),
    PointPolicy("event_promotion", "행사 홍보", 50, "행사 상단 노출"),
    # Free
    PointPolicy("event_register", "행사 참가 신청", 0, "행사 참가 신청"),
]


class PointPolicyTable:
    """Lookup of point policies by action key."""

    def __init__(self, policies: Iterable[PointPolicy] = DEFAULT_POLICIES):
        self._policies: Dict[str, PointPolicy] = {p.action: p for p in policies}

    def get_policy(self, action: str) -> Optional[PointPolicy]:
        return self._policies.get(action)

    def all(self) -> List[PointPolicy]:
        return list(self._policies.values())


point_policies = PointPolicyTable()
