"""
블로그/키워드/이미지 분석 프롬프트 생성.

원칙:
- 사실성 가드레일 최상단 (facts에 있는 값만 사실로 작성)
- 프롬프트 본문에 마크다운/이모지 사용 안 함
- 글 유형별 첫 문단 공식, 본문 구조, 필수 요소 개수 고정
- 웹 클라이언트 상태(camelCase dict) → ContentState 변환은 build_generation_prompt()
"""

import re
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any

DIVIDER = "─" * 32

# =============================================================================
# Types
# =============================================================================


class ContentType(str, Enum):
    CENTER_INTRO = "center_intro"        # 센터 소개형
    CUSTOMER_STORY = "customer_story"    # 고객 경험 서사형
    EXERCISE_INFO = "exercise_info"      # 운동 정보형
    MEDICAL_INFO = "medical_info"        # 전문 정보형
    EVENT_REVIEW = "event_review"        # 행사/프로젝트형
    STAFF_INTRO = "staff_intro"          # 트레이너 소개형
    PROMOTION = "promotion"              # 프로모션형


class WriterPerspective(str, Enum):
    OWNER = "owner"
    MANAGER = "manager"
    TRAINER = "trainer"
    FC = "fc"


@dataclass
class Facts:
    """사실 데이터. 여기 있는 값만 본문에 사실로 작성."""
    address: str = ""
    hours: str = ""
    parking: str = ""
    price_table: str = ""
    area_pyeong: str = ""
    machines_count: str = ""
    trainer_certs: str = ""
    program_list: str = ""
    member_before: str = ""
    member_after: str = ""
    event_period: str = ""
    event_benefit: str = ""

    def to_dict(self) -> dict[str, str]:
        """빈 값 제외, camelCase 키."""
        return {
            _camel(f.name): getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name)
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Facts":
        data = data or {}
        return cls(**{f.name: str(data.get(_camel(f.name)) or "") for f in fields(cls)})


@dataclass
class CustomerStory:
    customer_profile: str = ""
    duration: str = ""
    initial_problem: str = ""
    trainer_feedback: str = ""
    hard_moment: str = ""
    change_point: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CustomerStory":
        return cls(**{f.name: str(data.get(_camel(f.name)) or "") for f in fields(cls)})


@dataclass
class StaffInfo:
    name: str = ""
    position: str = ""
    career: str = ""
    specialty: str = ""
    philosophy: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StaffInfo":
        return cls(**{f.name: str(data.get(f.name) or "") for f in fields(cls)})


@dataclass
class ContentState:
    """블로그 프롬프트 입력."""
    business_name: str
    location: str
    main_keyword: str
    content_type: ContentType
    writer_perspective: WriterPerspective
    sub_keywords: list[str] = field(default_factory=list)
    target_audience: str = ""
    unique_point: str = ""
    custom_title: str = ""
    facts: Facts = field(default_factory=Facts)
    customer_story: CustomerStory | None = None
    staff_info: StaffInfo | None = None


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


# =============================================================================
# Content Type / Perspective Tables
# =============================================================================

CONTENT_TYPE_INFO: dict[ContentType, dict[str, Any]] = {
    ContentType.CENTER_INTRO: {"name": "센터 소개형", "experience_elements": 3, "info_elements": 4},
    ContentType.CUSTOMER_STORY: {"name": "고객 경험 서사형", "experience_elements": 5, "info_elements": 2},
    ContentType.EXERCISE_INFO: {"name": "운동 정보형", "experience_elements": 2, "info_elements": 4},
    ContentType.MEDICAL_INFO: {"name": "전문 정보형", "experience_elements": 2, "info_elements": 5},
    ContentType.EVENT_REVIEW: {"name": "행사/프로젝트형", "experience_elements": 4, "info_elements": 3},
    ContentType.STAFF_INTRO: {"name": "트레이너 소개형", "experience_elements": 4, "info_elements": 3},
    ContentType.PROMOTION: {"name": "프로모션형", "experience_elements": 2, "info_elements": 4},
}

PERSPECTIVE_GUIDE: dict[WriterPerspective, dict[str, str]] = {
    WriterPerspective.OWNER: {
        "name": "대표자",
        "tone": "센터의 비전과 철학을 담아 따뜻하고 진정성 있게",
        "first_person": "저희 센터 / 제가 이 센터를 만들 때",
    },
    WriterPerspective.MANAGER: {
        "name": "센터장",
        "tone": "현장을 가장 잘 아는 관리자로서 실질적이고 구체적으로",
        "first_person": "저희 센터 / 제가 현장에서 보면",
    },
    WriterPerspective.TRAINER: {
        "name": "트레이너",
        "tone": "전문가로서 회원 변화를 함께한 경험을 생생하게",
        "first_person": "제가 담당한 회원분 / 저는 트레이너로서",
    },
    WriterPerspective.FC: {
        "name": "FC(상담사)",
        "tone": "상담 경험을 바탕으로 고객 니즈를 잘 아는 따뜻한 안내자",
        "first_person": "상담하다 보면 / 저희 센터를 찾아주시는 분들",
    },
}

FIRST_PARAGRAPH_FORMULA: dict[ContentType, tuple[str, str, str]] = {
    ContentType.CENTER_INTRO: (
        "이 센터가 어떤 사람에게 맞는지 (결론)",
        "다른 곳과 다른 차별점 1가지",
        "방문 전 알면 좋은 것 1가지",
    ),
    ContentType.CUSTOMER_STORY: (
        "회원 프로필 (OO대 OO, OO 고민)",
        "처음 왔을 때 상태 (facts에 있는 수치 사용)",
        "지금은 어떻게 달라졌는지 (결론 먼저)",
    ),
    ContentType.EXERCISE_INFO: (
        "이 운동이 필요한 사람 (타겟 명시)",
        "흔히 하는 실수 1가지",
        "오늘 알려줄 핵심 해결법",
    ),
    ContentType.MEDICAL_INFO: (
        "이 증상에 대한 흔한 오해 1가지",
        "실제 메커니즘 간략히",
        "운동으로 접근하는 방법 예고",
    ),
    ContentType.EVENT_REVIEW: (
        "행사/프로젝트 이름과 결과 (숫자 포함)",
        "기획하게 된 계기 1가지",
        "참여자 반응 한마디 (직접 인용)",
    ),
    ContentType.STAFF_INTRO: (
        "트레이너 이름과 전문 분야",
        "이 일을 하게 된 계기 한마디",
        "어떤 분들이 찾아오시는지",
    ),
    ContentType.PROMOTION: (
        "핵심 혜택 (가장 매력적인 것)",
        "대상과 기간",
        "신청 방법 (바로 행동 가능하게)",
    ),
}

CONTENT_STRUCTURES: dict[ContentType, tuple[str, ...]] = {
    ContentType.CENTER_INTRO: (
        "첫인상/분위기 (경험적 도입)",
        "시설 둘러보기 (공간별)",
        "프로그램/서비스",
        '가격 안내 (facts 기반, 없으면 "상담 시 안내")',
        "찾아오는 길",
        "이런 분께 추천",
    ),
    ContentType.CUSTOMER_STORY: (
        "회원 소개 + 결론 먼저 (어떻게 달라졌는지)",
        "처음 왔을 때 상태 (facts 수치 사용)",
        "트레이너 피드백 (직접 인용 필수)",
        "중간에 힘들었던 순간",
        "변화가 느껴진 순간 (구체적 상황)",
        "현재 상태 + 회원 한마디",
    ),
    ContentType.EXERCISE_INFO: (
        "이 운동이 필요한 분",
        "운동 방법 (단계별)",
        "흔한 실수와 교정법",
        "기대 효과",
        "저희 센터에서는 이렇게 진행해요",
    ),
    ContentType.MEDICAL_INFO: (
        "이런 분들이 많이 오세요 (공감)",
        "원인과 메커니즘 (전문 지식)",
        "운동이 도움되는 이유",
        "추천 운동/관리법",
        "저희 센터의 접근법",
        "의료기관 상담 권고 (필수)",
    ),
    ContentType.EVENT_REVIEW: (
        "행사/프로젝트 소개 + 결과",
        "기획하게 된 이유",
        "진행 과정",
        "참여자 반응 (직접 인용)",
        "성과 및 다음 계획",
    ),
    ContentType.STAFF_INTRO: (
        "트레이너 프로필",
        "이 일을 시작한 계기",
        "트레이닝 철학/스타일",
        "기억에 남는 회원 에피소드",
        "이런 분들께 추천",
    ),
    ContentType.PROMOTION: (
        "핵심 혜택 (가장 매력적인 것)",
        "상세 내용 및 조건",
        "대상 및 기간",
        "신청 방법",
        "이전 참여자 후기 (있을 때만)",
    ),
}

FACT_LABELS: tuple[tuple[str, str], ...] = (
    ("address", "주소"),
    ("hours", "영업시간"),
    ("parking", "주차"),
    ("price_table", "가격"),
    ("area_pyeong", "규모"),
    ("machines_count", "기구"),
    ("trainer_certs", "트레이너 자격"),
    ("program_list", "프로그램"),
    ("member_before", "회원 전 상태"),
    ("member_after", "회원 후 상태"),
    ("event_period", "이벤트 기간"),
    ("event_benefit", "이벤트 혜택"),
)

NO_FACTS_TEXT = '(입력된 사실 정보 없음 - 수치/가격 등은 "상담 시 안내"로 표기)'

TRAINER_STORY_EXAMPLE = """"제가 담당한 회원분 중 기억에 남는 분이 계세요.

[회원 프로필] OO대 OO이셨는데, 처음 오셨을 때 [facts의 전 상태 수치]였어요.
[초기 문제]로 고민이 많으셨죠.

'[트레이너 피드백 직접 인용]'이라고 말씀드렸어요.

[기간]차쯤 '[힘들었던 순간 - 회원 말 직접 인용]'이라고 하셔서
[트레이너가 한 설명/격려]라고 말씀드렸어요.

[변화 시점]에 '[변화 느낀 순간 - 회원 말 직접 인용]'

지금은 [facts의 후 상태 수치, 없으면 정성적 표현]
이런 변화를 함께 만들어가는 게 이 일의 보람이에요."

(위 [괄호] 부분을 실제 입력값으로 대체)"""

OWNER_CENTER_EXAMPLE = """"이 공간을 만들 때 가장 중요하게 생각한 게 있어요.

'[핵심 철학/비전 한 문장]'

[이 철학이 나온 배경 - 개인 경험]

그래서 저희 센터는 [차별점]을 만들려고 노력해요.

[facts에 시설 규모가 있으면] 규모는 [평수], [기구 수] 정도예요.
[없으면] 규모는 방문하시면 직접 확인하실 수 있어요.

많은 분들이 '[회원들이 자주 하는 말 - 직접 인용]'라고 하세요."

(위 [괄호] 부분을 실제 입력값으로 대체, facts에 없으면 해당 문장 생략)"""

MEDICAL_EXAMPLE = """"[증상명]으로 상담 오시는 분들이 정말 많아요.

많은 분들이 '[흔한 오해]'라고 생각하시는데,
실제로는 [정확한 메커니즘 설명]이에요.

해부학적으로 보면 [원리 설명 - 전문 용어 + 쉬운 설명]

그래서 저는 [증상명] 회원분들께 [접근법]을 먼저 안내드려요.

실제로 이 방법으로 [정성적 결과 - "많이 좋아지셨다", "편해졌다고 하신다"]

단, 통증이 심하거나 지속되면 전문 의료기관 상담을 권장합니다."

(의학적 단정 금지, 의료기관 권고 필수)"""

DEFAULT_EXAMPLE = f""""[첫 문단 공식에 따른 3문장]

[이미지: 구체적 설명]

{DIVIDER}

[본문 섹션 1]
[경험 요소: 실제 상황 + 직접 인용]

[이미지: 해당 섹션 관련]

{DIVIDER}

[본문 섹션 2]
[정보 요소: facts 기반 데이터]

..."

(각 섹션에 경험 요소와 정보 요소를 필수 개수만큼 배치)"""

MEDICAL_DISCLAIMER = f"""
{DIVIDER}
【의료 정보 면책 규칙】
{DIVIDER}

1. "치료", "완치", "100% 개선" 등 의학적 단정 표현 금지
2. "OO에 효과적입니다" 대신 "OO에 도움이 될 수 있습니다" 사용
3. 글 마지막에 반드시 포함: "통증이 심하거나 지속되면 전문 의료기관 상담을 권장합니다"
"""


def _section_header(title: str) -> str:
    return f"{DIVIDER}\n{title}\n{DIVIDER}"


# =============================================================================
# Section Builders
# =============================================================================


def build_facts_section(facts: Facts) -> str:
    lines = [
        f"{label}: {getattr(facts, name)}"
        for name, label in FACT_LABELS
        if getattr(facts, name)
    ]
    return "\n".join(lines) if lines else NO_FACTS_TEXT


def build_customer_story_section(story: CustomerStory | None) -> str:
    if story is None:
        return ""
    return f"""
{_section_header("【회원 스토리 정보】")}
회원 프로필: {story.customer_profile}
기간: {story.duration}
초기 문제: {story.initial_problem}
트레이너 피드백 (직접 인용): "{story.trainer_feedback}"
힘들었던 순간: {story.hard_moment}
변화 느낀 순간: {story.change_point}"""


def build_staff_section(staff: StaffInfo | None) -> str:
    if staff is None:
        return ""
    return f"""
{_section_header("【트레이너 정보】")}
이름: {staff.name}
직책: {staff.position}
경력: {staff.career}
전문 분야: {staff.specialty}
트레이닝 철학: {staff.philosophy}"""


def build_summary_section(state: ContentState) -> str:
    """요약 정보. facts에 없는 항목은 "상담 시 안내"/"방문 시 확인"."""
    facts = state.facts
    lines = [
        f"【{state.business_name} 요약 정보】",
        "",
        f"업체명: {state.business_name}",
        f"위치: {state.location}",
        f"영업시간: {facts.hours or '상담 시 안내'}",
        f"주차: {facts.parking or '방문 시 확인'}",
        f"가격: {facts.price_table or '상담 시 안내'}",
    ]
    if state.unique_point:
        lines.append(f"특징: {state.unique_point}")
    return "\n".join(lines)


def get_content_structure(content_type: ContentType) -> str:
    steps = CONTENT_STRUCTURES[content_type]
    return "\n" + "\n".join(f"{i}. {step}" for i, step in enumerate(steps, start=1))


def get_first_paragraph_formula(content_type: ContentType) -> str:
    first, second, third = FIRST_PARAGRAPH_FORMULA[content_type]
    return f"""
【첫 문단 공식 - 3문장 필수】
1문장: {first}
2문장: {second}
3문장: {third}"""


def get_placeholder_example(content_type: ContentType, perspective: WriterPerspective) -> str:
    if content_type == ContentType.CUSTOMER_STORY and perspective == WriterPerspective.TRAINER:
        return TRAINER_STORY_EXAMPLE
    if content_type == ContentType.CENTER_INTRO and perspective == WriterPerspective.OWNER:
        return OWNER_CENTER_EXAMPLE
    if content_type == ContentType.MEDICAL_INFO:
        return MEDICAL_EXAMPLE
    return DEFAULT_EXAMPLE


# =============================================================================
# Blog Prompts
# =============================================================================


def build_blog_prompt(state: ContentState) -> str:
    """전체 블로그 작성 프롬프트 (2500자 이상 요구)."""
    info = CONTENT_TYPE_INFO[state.content_type]
    perspective = PERSPECTIVE_GUIDE[state.writer_perspective]
    sub_keywords = ", ".join(k for k in state.sub_keywords if k) or "없음"

    optional_lines = "\n".join([
        f"타겟 독자: {state.target_audience}" if state.target_audience else "",
        f"핵심 차별점: {state.unique_point}" if state.unique_point else "",
        f"지정 제목: {state.custom_title}" if state.custom_title else "",
    ])
    medical = MEDICAL_DISCLAIMER if state.content_type == ContentType.MEDICAL_INFO else ""
    title_block = (
        f"【제목】\n{state.custom_title}"
        if state.custom_title
        else "【제목 후보 3개】\n- 지역 + 핵심 키워드 + 구체적 결과\n- 타겟 + 기간 + 변화\n- 질문형 또는 숫자 포함형"
    )

    return f"""당신은 2026년 네이버 알고리즘에 최적화된 피트니스 블로그 전문 작가입니다.

{_section_header("【최우선 규칙: 사실성 가드레일】")}

아래 규칙을 어기면 전체 글이 무효 처리됩니다.

1. 주소, 영업시간, 주차요금, 가격, 평수, 기구 수, 할인율, 자격증, 전후 수치 등 사실 데이터는 아래 【입력된 사실 정보】에 있을 때만 작성합니다.

2. 【입력된 사실 정보】에 없는 항목은 임의로 생성하지 않고, 해당 위치에 "상담 시 안내" 또는 "방문 시 확인"으로 표기합니다.

3. 임의 수치, 임의 후기, 임의 의학적 단정은 절대 금지입니다.

4. 회원 후기를 작성할 때, 【입력된 사실 정보】의 전후 수치가 없으면 구체적 숫자 대신 "눈에 띄는 변화", "확실히 달라진 느낌" 등 정성적 표현을 사용합니다.

{_section_header("【입력된 사실 정보】 - 이 값만 사실로 작성 가능")}
{build_facts_section(state.facts)}

{_section_header("【기본 정보】")}

업체명: {state.business_name}
위치: {state.location}
메인 키워드: {state.main_keyword}
보조 키워드: {sub_keywords}
글 유형: {info["name"]}
글쓴이 시점: {perspective["name"]}
{optional_lines}

{build_customer_story_section(state.customer_story)}
{build_staff_section(state.staff_info)}

{_section_header(f"【글쓴이 시점: {perspective['name']}】")}

말투: {perspective["tone"]}
1인칭: {perspective["first_person"]}

{_section_header("【필수 요소 개수】 - 비율 대신 개수로 체크")}

경험 서사 요소 {info["experience_elements"]}개 필수:
- 실제 상황 묘사 (언제, 어디서, 누가)
- 직접 인용 ("OOO라고 하셨어요")
- 감정/갈등 (힘들었던 순간, 고민)
- 전환점 (변화가 느껴진 순간)
- 결과/깨달음

정보 요소 {info["info_elements"]}개 필수:
- 프로그램/서비스 설명
- 이용 흐름/절차
- 시설/장비 안내
- 문의/예약 방법
- 가격/혜택 (facts에 있을 때만)

{DIVIDER}
{get_first_paragraph_formula(state.content_type)}
{DIVIDER}

{_section_header(f"【{info['name']} 본문 구조】")}
{get_content_structure(state.content_type)}

{medical}

{_section_header("【출력 규칙 3가지】")}

1. 마크다운 금지: ** / ## / 이모지 절대 사용 금지
2. 인사말 금지: "안녕하세요" 없이 바로 본론 시작
3. 【섹션제목】 형식 + {DIVIDER} 구분선 사용

{_section_header("【출력 형식】")}

{title_block}

{DIVIDER}

【첫 문단】
(위 첫 문단 공식대로 3문장)

[이미지: 대표 사진 - 구체적 설명]

{DIVIDER}

(본문 섹션들 - 섹션당 이미지 1개씩)

{DIVIDER}

{build_summary_section(state)}

{_section_header("【자리표시자 예시】 - 이 형식으로 작성하되, 값은 facts 기반으로")}

{get_placeholder_example(state.content_type, state.writer_perspective)}

{_section_header("【최종 검수 체크 5가지】")}

글 완성 후 아래 5가지를 확인하세요:

1. 첫 문단 3문장 안에 결론/핵심이 있는가?
2. 과장/단정 표현("최고", "완치", "100%")이 없는가?
3. facts에 없는 수치/정보가 생성되지 않았는가?
4. 섹션이 최소 5개 이상인가?
5. 문의/예약 유도(CTA)가 1개 이상 있는가?

{DIVIDER}

2500자 이상 작성.
이미지는 섹션당 1개씩 자연스럽게 배치."""


def build_blog_prompt_lite(state: ContentState) -> str:
    """토큰 절약용 축약 프롬프트 (2000자 이상 요구)."""
    info = CONTENT_TYPE_INFO[state.content_type]
    perspective = PERSPECTIVE_GUIDE[state.writer_perspective]
    title_line = f"제목: {state.custom_title}" if state.custom_title else ""
    title_output = f"【제목】{state.custom_title}" if state.custom_title else "【제목】3개"

    return f"""2026 네이버 SEO 피트니스 블로그.

【최우선 규칙】
- facts에 있는 값만 사실로 작성
- 없는 수치/가격은 "상담 시 안내"로 표기
- 임의 수치 생성 절대 금지

【facts】
{build_facts_section(state.facts)}

【기본정보】
업체: {state.business_name} ({state.location})
키워드: {state.main_keyword}
글유형: {info["name"]}
시점: {perspective["name"]}
{title_line}

【필수요소】
경험서사 {info["experience_elements"]}개 (상황, 인용, 감정, 전환점)
정보 {info["info_elements"]}개 (프로그램, 절차, 시설, 문의방법)

【규칙 3가지】
1. 마크다운/** 이모지 금지
2. 인사말 없이 바로 시작
3. 【섹션】 + ──── 구분선 사용

【출력】
{title_output}
────
【첫문단】3문장 (결론-차별점-안내)
────
【본문】섹션당 이미지 1개
────
【요약】업체명/위치/영업시간(facts 기반)/가격(facts 기반)

2000자 이상."""


def build_modify_prompt(original_content: str, user_request: str) -> str:
    return f"""블로그 글 수정.

【수정 요청】{user_request}

【기존 글】
{original_content}

【규칙】
1. facts에 없는 수치 추가 금지
2. 이미지 프롬프트 유지
3. 구분선 유지
4. 마크다운/이모지 금지

전체 글 출력."""


# =============================================================================
# Client State Adapter
# =============================================================================

_SEARCH_INTENT_CONTENT_TYPE = {
    "location": ContentType.CENTER_INTRO,
    "information": ContentType.EXERCISE_INFO,
    "transaction": ContentType.PROMOTION,
    "navigation": ContentType.CENTER_INTRO,
}

# 속성 키 부분 일치 → Facts 필드 (위에서부터 첫 매칭)
_ATTRIBUTE_FACT_KEYS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("주소", "위치"), "address"),
    (("영업", "시간", "운영"), "hours"),
    (("주차",), "parking"),
    (("가격", "요금", "회원권", "비용"), "price_table"),
    (("평", "규모", "면적"), "area_pyeong"),
    (("기구", "머신", "장비"), "machines_count"),
    (("자격", "인증"), "trainer_certs"),
    (("프로그램", "수업", "클래스"), "program_list"),
    (("이벤트", "할인", "혜택"), "event_benefit"),
)


def search_intent_to_content_type(intent: str | None) -> ContentType:
    """검색 의도 → 글 유형. 모르는 값은 센터 소개형."""
    return _SEARCH_INTENT_CONTENT_TYPE.get(intent or "", ContentType.CENTER_INTRO)


def parse_writer_perspective(persona: str | None) -> WriterPerspective:
    """페르소나 텍스트 → 시점. 매칭 없으면 대표자."""
    if not persona:
        return WriterPerspective.OWNER
    lower = persona.lower()
    if any(word in lower for word in ("트레이너", "강사", "코치")):
        return WriterPerspective.TRAINER
    if any(word in lower for word in ("센터장", "관리")):
        return WriterPerspective.MANAGER
    if any(word in lower for word in ("fc", "상담")):
        return WriterPerspective.FC
    return WriterPerspective.OWNER


def extract_facts(attributes: dict[str, Any] | None) -> Facts:
    """업체 속성 {라벨: 값} → Facts (같은 필드는 마지막 값)."""
    facts = Facts()
    for key, value in (attributes or {}).items():
        if not value:
            continue
        lower = key.lower()
        for keywords, name in _ATTRIBUTE_FACT_KEYS:
            if any(word in lower for word in keywords):
                setattr(facts, name, str(value))
                break
    return facts


def _equipment_text(equipment: list[dict[str, Any]]) -> str:
    return ", ".join(
        f"{item.get('name', '')} {item['count']}대" if item.get("count") else str(item.get("name", ""))
        for item in equipment
    )


def extract_facts_from_image_analysis(results: list[dict[str, Any]]) -> dict[str, str]:
    """
    이미지 분석 JSON → Facts로 승격할 항목.

    - equipment → machines_count
    - numbersFound + textFound(type=price) → price_table
    - certificates → trainer_certs
    - textFound(type=sign) 중 주소 형태 → address (첫 매칭만)
    - spaceSize → area_pyeong (첫 값만)
    """
    image_facts: dict[str, str] = {}

    def append(name: str, value: str, sep: str) -> None:
        image_facts[name] = f"{image_facts[name]}{sep}{value}" if image_facts.get(name) else value

    for result in results:
        equipment = result.get("equipment") or []
        if equipment:
            text = _equipment_text(equipment)
            if text:
                append("machines_count", text, ", ")

        text_found = result.get("textFound") or []
        prices = [str(n) for n in result.get("numbersFound") or []] + [
            t.get("raw", "") for t in text_found if t.get("type") == "price"
        ]
        if prices:
            append("price_table", ", ".join(prices), ", ")

        certificates = result.get("certificates") or []
        if certificates:
            cert_text = "; ".join(
                " / ".join(v for v in (c.get("name"), c.get("issuer"), c.get("person")) if v)
                for c in certificates
            )
            if cert_text:
                append("trainer_certs", cert_text, "; ")

        signs = [t.get("raw", "") for t in text_found if t.get("type") == "sign"]
        if signs and "address" not in image_facts:
            address = next(
                (s for s in signs if re.search(r"[시군구동로길]", s) or re.search(r"\d{1,3}층", s)),
                None,
            )
            if address:
                image_facts["address"] = address

        if result.get("spaceSize") and "area_pyeong" not in image_facts:
            image_facts["area_pyeong"] = f"사진 기준 {result['spaceSize']}"

    return image_facts


def merge_image_facts(base: Facts, image_facts: dict[str, str]) -> Facts:
    """입력 facts 우선. 빈 항목만 이미지로 채우고, 기구는 사진 확인 내용으로 보강."""
    merged = Facts(**{f.name: getattr(base, f.name) for f in fields(Facts)})
    for name, value in image_facts.items():
        current = getattr(merged, name)
        if not current and value:
            setattr(merged, name, value)
        elif current and value and name == "machines_count":
            setattr(merged, name, f"{current} (사진 확인: {value})")
    return merged


def build_image_analysis_context(images: list[dict[str, Any]]) -> str:
    """업로드 사진 분석 결과 → 프롬프트 앞부분. 분석된 사진이 없으면 빈 문자열."""
    analyzed = [img for img in images if img.get("analysis") or img.get("analysisJson")]
    if not analyzed:
        return ""

    context = f"\n{_section_header('【업로드 사진 분석 결과】')}\n\n"
    for index, image in enumerate(analyzed, start=1):
        result = image.get("analysisJson")
        if not result:
            context += f"[사진 {index}]\n{image['analysis']}\n\n"
            continue

        lines = [f"[사진 {index}]"]
        if result.get("placeType"):
            lines.append(f"장소: {result['placeType']}")
        if result.get("equipment"):
            lines.append(f"기구: {_equipment_text(result['equipment'])}")
        if result.get("spaceSize"):
            lines.append(f"규모: {result['spaceSize']}")
        people = result.get("people") or {}
        if people.get("exists") and people.get("description"):
            lines.append(f"인물: {people['description']}")
        if result.get("textFound"):
            lines.append(f"텍스트: {' / '.join(t.get('raw', '') for t in result['textFound'])}")
        if result.get("numbersFound"):
            lines.append(f"숫자/가격: {', '.join(str(n) for n in result['numbersFound'])}")
        if result.get("certificates"):
            certs = ", ".join(f"{c.get('name')}({c.get('issuer')})" for c in result["certificates"])
            lines.append(f"자격증: {certs}")
        if result.get("brandLogo"):
            lines.append(f"브랜드: {', '.join(result['brandLogo'])}")
        mood = result.get("mood") or {}
        if mood.get("impression"):
            lines.append(f"분위기: {mood['impression']}")
        if result.get("recommendedSection"):
            lines.append(f"추천 섹션: {result['recommendedSection']}")
        if result.get("claimSupport"):
            lines.append(f"활용: {result['claimSupport']}")
        context += "\n".join(lines) + "\n\n"

    context += f"""{DIVIDER}
위 사진 분석 내용 중 구체적 수치(기구 수, 가격, 자격증명)는 facts에 병합되어 사실로 작성됩니다.
null 항목은 본문에 포함하지 마세요.
각 사진의 추천 섹션에 맞는 위치에 [이미지: 사진 내용 설명] 형식으로 배치하세요.
{DIVIDER}

"""
    return context


def build_top_blogs_learning_context(learning: dict[str, Any] | None) -> str:
    """상위노출 학습 결과(LearningResult.to_dict 형식) → 프롬프트 앞부분."""
    if not learning or not learning.get("successfulBlogs"):
        return ""

    analysis = learning.get("analysis") or {}
    context = f"""
{_section_header(f'【PRO 기능】 "{learning.get("keyword", "")}" 상위노출 블로그 {learning["successfulBlogs"]}개 분석 결과')}

상위노출 블로그 평균 통계:
- 평균 글자수: {int(analysis.get("avgWordCount") or 0):,}자 (이 정도 분량으로 작성 필요)
- 평균 섹션 수: {analysis.get("avgSections", 0)}개
- 평균 이미지 수: {analysis.get("avgImages", 0)}개

상위노출 제목 패턴: {", ".join(analysis.get("titlePatterns") or []) or "일반형"}
상위노출 글의 공통 구조: {", ".join(analysis.get("commonStructures") or []) or "자유 형식"}

【상위 블로그 구조 참고】
"""
    for index, blog in enumerate((learning.get("blogs") or [])[:3], start=1):
        structure = blog.get("structure") or {}
        context += f"""
{index}. "{blog.get("title", "")}"
   - 글자수: {int(blog.get("wordCount") or 0):,}자
   - 섹션: {structure.get("sectionCount", 0)}개
   - 이미지: {structure.get("imageCount", 0)}개
   - FAQ 포함: {"예" if structure.get("hasFAQ") else "아니오"}
   - 가격표 포함: {"예" if structure.get("hasTable") else "아니오"}
   - 관련 키워드: {", ".join((blog.get("keywords") or [])[:5])}
"""

    context += f"""
{DIVIDER}
중요: 위 분석 결과를 참고하되, 표절이 아닌 완전히 새롭고 독창적인 콘텐츠를 작성하세요.
{DIVIDER}

"""
    return context


def content_state_from_request(data: dict[str, Any]) -> ContentState:
    """
    웹 클라이언트 상태 → ContentState.

    - contentType 없으면 searchIntent로 결정
    - facts: 명시 facts > attributes 추출, 이미지 분석 JSON으로 보강
    - location 없으면 메인 키워드 (보통 "지역+업종")
    """
    raw_type = data.get("contentType")
    content_type = (
        ContentType(raw_type)
        if raw_type in {t.value for t in ContentType}
        else search_intent_to_content_type(data.get("searchIntent"))
    )

    facts = Facts.from_dict(data["facts"]) if data.get("facts") else extract_facts(data.get("attributes"))
    image_results = [img["analysisJson"] for img in data.get("images") or [] if img.get("analysisJson")]
    if image_results:
        facts = merge_image_facts(facts, extract_facts_from_image_analysis(image_results))

    story = data.get("customerStory")
    staff = data.get("staffInfo")
    main_keyword = data.get("mainKeyword") or ""

    return ContentState(
        business_name=data.get("businessName") or "",
        location=data.get("location") or main_keyword,
        main_keyword=main_keyword,
        sub_keywords=list(data.get("subKeywords") or []),
        content_type=content_type,
        writer_perspective=(
            WriterPerspective(data["writerPerspective"])
            if data.get("writerPerspective") in {p.value for p in WriterPerspective}
            else parse_writer_perspective(data.get("writerPersona"))
        ),
        target_audience=data.get("targetAudience") or data.get("targetReader") or "",
        unique_point=data.get("uniquePoint") or "",
        custom_title=data.get("customTitle") or "",
        facts=facts,
        customer_story=CustomerStory.from_dict(story) if story else None,
        staff_info=StaffInfo.from_dict(staff) if staff else None,
    )


def build_generation_prompt(data: dict[str, Any], lite: bool = False) -> tuple[str, Facts]:
    """
    클라이언트 상태 → 최종 블로그 프롬프트.

    순서: [학습 컨텍스트] → [사진 분석] → 본문 프롬프트
    lite 모드: 사진 분석은 200자 요약만, 학습 컨텍스트 생략

    Returns:
        (prompt, facts) - facts는 생성 후 검증에 사용
    """
    state = content_state_from_request(data)
    images = data.get("images") or []

    if lite:
        prompt = build_blog_prompt_lite(state)
        analyzed = [img for img in images if img.get("analysis")]
        if analyzed:
            image_lines = "\n".join(
                f"[사진{i}] {img['analysis'][:200]}" for i, img in enumerate(analyzed, start=1)
            )
            prompt = f"【사진분석】\n{image_lines}\n\n{prompt}"
        return prompt, state.facts

    prompt = f"{build_image_analysis_context(images)}{build_blog_prompt(state)}"

    learning_context = build_top_blogs_learning_context(data.get("topBlogsLearning"))
    if learning_context:
        prompt = f"""{learning_context}

위 상위노출 분석 결과를 참고하여 아래 요청대로 블로그 글을 작성해주세요.

{DIVIDER}

{prompt}"""
    return prompt, state.facts


# =============================================================================
# Keyword / Image Analysis Prompts
# =============================================================================

KEYWORD_SYSTEM_PROMPT = "당신은 네이버 블로그 SEO 전문가입니다. JSON 형식으로만 응답하세요."
IMAGE_ANALYSIS_MAX_CHARS = 800


def build_keyword_prompt(
    main_keyword: str,
    category: str | None = None,
    business_name: str | None = None,
    image_context: str | None = None,
    image_analysis: str | None = None,
) -> str:
    """보조/롱테일 키워드 + 제목 5개 JSON 요청."""
    context_section = f"\n\n【글 작성 의도/기획】\n{image_context}" if image_context else ""
    analysis_section = (
        f"\n\n【업로드된 이미지 분석 결과】\n{image_analysis[:IMAGE_ANALYSIS_MAX_CHARS]}"
        if image_analysis
        else ""
    )
    extra_rule = (
        """4. 매우 중요: "글 작성 의도/기획"이나 "이미지 분석 결과"가 있으면 반드시 그 내용을 중심으로 키워드와 제목을 생성하세요.
   - 이미지에서 발견된 텍스트, 브랜드, 인물, 상품 등을 키워드와 제목에 적극 반영하세요.
   - 업체 정보는 보조적으로 활용하고, 이미지와 기획 의도가 핵심입니다."""
        if image_context or image_analysis
        else ""
    )

    return f"""당신은 네이버 블로그 SEO 전문가입니다. 아래 정보를 바탕으로 키워드와 블로그 제목을 생성해주세요.

메인 키워드: {main_keyword}
업종: {category or "피트니스"}
업체명: {business_name or ""}{context_section}{analysis_section}

다음 JSON 형식으로만 응답하세요. 다른 텍스트는 포함하지 마세요:
{{
  "subKeywords": ["보조키워드1", "보조키워드2", "보조키워드3"],
  "tailKeywords": ["롱테일키워드1", "롱테일키워드2", "롱테일키워드3"],
  "titles": ["제목1", "제목2", "제목3", "제목4", "제목5"]
}}

규칙:
1. 보조 키워드(subKeywords): 메인 키워드와 관련된 핵심 검색어 3개
2. 테일 키워드(tailKeywords): 구체적인 롱테일 검색어 3개
3. 추천 제목(titles): 네이버 블로그 상위노출에 유리한 매력적인 제목 5개
   - 제목에 메인 키워드를 자연스럽게 포함
   - 궁금증 유발, 숫자 활용, 솔직 후기 톤 등 다양하게
   - 네이버 블로그에서 실제로 클릭하고 싶은 제목으로
   - 30자 이내로 작성
{extra_rule}"""


def _business_context(business_info: dict[str, Any] | None) -> str:
    if not business_info:
        return ""
    return f"""
업체 정보:
- 업체명: {business_info.get("businessName") or "미입력"}
- 메인키워드: {business_info.get("mainKeyword") or "미입력"}
- 타겟고객: {business_info.get("targetAudience") or "미입력"}
- 핵심차별점: {business_info.get("uniquePoint") or "미입력"}

위 업체 정보를 참고하여 이 업체의 블로그에 맞는 분석을 해주세요."""


def build_image_analysis_prompt(
    category: str | None,
    business_info: dict[str, Any] | None = None,
    context: str | None = None,
) -> str:
    """자유 텍스트 이미지 분석 (6개 항목, 마크다운 금지)."""
    user_context = f"\n\n추가 참고 정보:\n{context}" if context else ""
    return f"""이 이미지를 분석하여 {category or "피트니스"} 블로그 포스팅에 활용할 정보를 추출해주세요.
{_business_context(business_info)}{user_context}

다음 형식으로 응답해주세요:
1. 이미지 유형: (시설사진/운동사진/인물사진/전후비교/자격증 취득/전문성 인증 등)
2. 주요 객체: (보이는 주요 사물, 기구, 인물, 자격증, 수료증 등)
3. 분위기/톤: (밝음/어두움, 전문적/친근함, 신뢰감/권위 등)
4. 추천 활용 위치: (첫문단/시설소개/프로그램소개/후기섹션/트레이너 소개/강점 강조 등)
5. 매칭 텍스트 제안: (이 사진과 함께 쓰면 좋을 문장 2-3개)
6. 문맥 일치도 체크포인트: (이 사진으로 증명할 수 있는 주장)

중요: 마크다운 문법(#, **, -, * 등)과 이모지는 절대 사용하지 마세요. 순수 텍스트로만 응답하세요."""


def build_image_analysis_json_prompt(
    business_info: dict[str, Any] | None = None,
    context: str | None = None,
) -> str:
    """구조화 이미지 분석 (JSON 스키마, 보이지 않는 항목은 null)."""
    user_context = f"\n\n추가 참고 정보:\n{context}" if context else ""
    return f"""이 사진을 보고 아래 JSON 스키마에 맞춰 결과를 출력하세요.
반드시 JSON만 출력하세요. JSON 외의 텍스트, 설명, 마크다운은 절대 포함하지 마세요.
사진에서 직접 보이는 것만 작성하고, 보이지 않는 항목은 null로 두세요.
{_business_context(business_info)}{user_context}

출력 JSON 스키마:
{{
  "placeType": "헬스장|필라테스|PT샵|요가|복싱|사무실|야외|기타" 또는 null,
  "equipment": [{{"name": "기구명", "count": 숫자 또는 null}}],
  "spaceSize": "좁음|보통|넓음" 또는 null,
  "people": {{"exists": true/false, "description": "성별, 연령대, 동작" 또는 null}},
  "textFound": [{{"raw": "사진에 보이는 텍스트 그대로", "type": "price|sign|certificate|other"}}],
  "numbersFound": ["사진에 보이는 숫자/가격 그대로"],
  "certificates": [{{"issuer": "발급기관", "name": "자격명", "person": "취득자명"}}],
  "brandLogo": ["브랜드명"],
  "mood": {{"lighting": "밝음|자연광|어두움|형광등" 또는 null, "cleanliness": "깨끗|보통|지저분" 또는 null, "impression": "한 문장 요약" 또는 null}},
  "recommendedSection": "시설소개|프로그램|트레이너소개|가격안내|찾아오는길|회원후기" 또는 null,
  "claimSupport": "이 사진으로 뒷받침할 수 있는 주장 한 문장" 또는 null
}}

규칙:
1. 보이지 않는 항목은 null, 빈 배열 []로 처리 (절대 "확인불가" 텍스트 사용 금지)
2. equipment.count는 정확히 셀 수 있을 때만 숫자, 아니면 null
3. textFound.raw는 사진에 보이는 글자를 변형 없이 그대로 옮겨 적기
4. JSON만 출력. 앞뒤 설명 텍스트 금지"""
