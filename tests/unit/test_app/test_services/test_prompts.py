"""
test_prompts.py - 프롬프트 생성 테스트

검증 포인트:
1. 클라이언트 상태 → ContentState (글 유형/시점/facts 결정)
2. 속성/이미지 분석 → facts 추출 및 병합 (입력 우선)
3. 블로그 프롬프트: 사실 정보, 의료 면책, lite 모드, 학습 컨텍스트
4. 키워드 프롬프트 / 수정 프롬프트
"""

from src.app.services.prompts import (
    NO_FACTS_TEXT,
    ContentType,
    Facts,
    WriterPerspective,
    build_facts_section,
    build_generation_prompt,
    build_image_analysis_context,
    build_keyword_prompt,
    build_modify_prompt,
    content_state_from_request,
    extract_facts,
    extract_facts_from_image_analysis,
    merge_image_facts,
    parse_writer_perspective,
    search_intent_to_content_type,
)

IMAGE_RESULT = {
    "placeType": "헬스장",
    "equipment": [{"name": "스미스머신", "count": 2}, {"name": "덤벨"}],
    "numbersFound": ["50,000"],
    "textFound": [
        {"raw": "월 5만원", "type": "price"},
        {"raw": "강남구 테헤란로 1 3층", "type": "sign"},
    ],
    "certificates": [{"name": "생활스포츠지도사", "issuer": "문체부", "person": "김코치"}],
    "spaceSize": "넓음",
}


class TestContentState:
    """클라이언트 상태 변환."""

    def test_search_intent_mapping(self):
        assert search_intent_to_content_type("transaction") == ContentType.PROMOTION
        assert search_intent_to_content_type("information") == ContentType.EXERCISE_INFO
        assert search_intent_to_content_type(None) == ContentType.CENTER_INTRO

    def test_parse_writer_perspective(self):
        assert parse_writer_perspective("헬스 트레이너 10년차") == WriterPerspective.TRAINER
        assert parse_writer_perspective("센터장") == WriterPerspective.MANAGER
        assert parse_writer_perspective("FC 상담 실장") == WriterPerspective.FC
        assert parse_writer_perspective("대표") == WriterPerspective.OWNER
        assert parse_writer_perspective(None) == WriterPerspective.OWNER

    def test_explicit_values_win(self):
        state = content_state_from_request(
            {
                "contentType": "medical_info",
                "searchIntent": "transaction",
                "writerPerspective": "trainer",
                "writerPersona": "대표",
                "mainKeyword": "강남 PT",
                "businessName": "강남핏",
            }
        )

        assert state.content_type == ContentType.MEDICAL_INFO
        assert state.writer_perspective == WriterPerspective.TRAINER
        assert state.location == "강남 PT"

    def test_facts_from_attributes(self):
        facts = extract_facts(
            {"주소": "서울 강남구", "영업시간": "06:00-24:00", "PT 가격": "10회 50만원", "기타": "x", "주차": ""}
        )

        assert facts.to_dict() == {
            "address": "서울 강남구",
            "hours": "06:00-24:00",
            "priceTable": "10회 50만원",
        }

    def test_explicit_facts_override_attributes(self):
        state = content_state_from_request(
            {"facts": {"priceTable": "월 9만원"}, "attributes": {"주소": "무시됨"}}
        )

        assert state.facts.price_table == "월 9만원"
        assert state.facts.address == ""


class TestImageFacts:
    """이미지 분석 → facts."""

    def test_extract_facts_from_image_analysis(self):
        assert extract_facts_from_image_analysis([IMAGE_RESULT]) == {
            "machines_count": "스미스머신 2대, 덤벨",
            "price_table": "50,000, 월 5만원",
            "trainer_certs": "생활스포츠지도사 / 문체부 / 김코치",
            "address": "강남구 테헤란로 1 3층",
            "area_pyeong": "사진 기준 넓음",
        }

    def test_merge_keeps_user_facts(self):
        merged = merge_image_facts(
            Facts(machines_count="기구 30대", address="서울 강남구 역삼동"),
            {"machines_count": "스미스머신 2대", "address": "다른 주소", "parking": "건물 지하"},
        )

        assert merged.machines_count == "기구 30대 (사진 확인: 스미스머신 2대)"
        assert merged.address == "서울 강남구 역삼동"
        assert merged.parking == "건물 지하"

    def test_image_analysis_context(self):
        context = build_image_analysis_context(
            [{"analysis": "밝은 시설 사진"}, {"analysisJson": IMAGE_RESULT}, {"data": "raw"}]
        )

        assert "[사진 1]\n밝은 시설 사진" in context
        assert "[사진 2]\n장소: 헬스장\n기구: 스미스머신 2대, 덤벨" in context
        assert "자격증: 생활스포츠지도사(문체부)" in context

    def test_no_analyzed_images(self):
        assert build_image_analysis_context([{"data": "raw"}]) == ""


class TestBlogPrompt:
    """build_generation_prompt."""

    def test_full_prompt_contains_facts(self):
        prompt, facts = build_generation_prompt(
            {
                "businessName": "강남핏",
                "mainKeyword": "강남 PT",
                "searchIntent": "transaction",
                "facts": {"priceTable": "10회 50만원"},
            }
        )

        assert facts.price_table == "10회 50만원"
        assert "가격: 10회 50만원" in prompt
        assert "글 유형: 프로모션형" in prompt
        assert "위치: 강남 PT" in prompt
        assert "2500자 이상 작성." in prompt

    def test_no_facts_placeholder(self):
        assert build_facts_section(Facts()) == NO_FACTS_TEXT

    def test_medical_disclaimer(self):
        prompt, _ = build_generation_prompt({"contentType": "medical_info", "mainKeyword": "허리 통증"})

        assert "전문 의료기관 상담을 권장합니다" in prompt

    def test_lite_prompt_with_image_summary(self):
        prompt, _ = build_generation_prompt(
            {"mainKeyword": "강남 PT", "images": [{"analysis": "가" * 300}]}, lite=True
        )

        assert prompt.startswith("【사진분석】\n[사진1] " + "가" * 200 + "\n")
        assert "2000자 이상." in prompt

    def test_learning_context_prepended(self):
        prompt, _ = build_generation_prompt(
            {
                "mainKeyword": "강남 PT",
                "topBlogsLearning": {
                    "keyword": "강남 PT",
                    "successfulBlogs": 2,
                    "analysis": {"avgWordCount": 2400, "titlePatterns": ["숫자 포함"]},
                    "blogs": [{"title": "PT 후기", "wordCount": 2000, "structure": {"hasFAQ": True}}],
                },
            }
        )

        assert prompt.index('"강남 PT" 상위노출 블로그 2개 분석 결과') < prompt.index("당신은 2026년")
        assert "평균 글자수: 2,400자" in prompt
        assert "FAQ 포함: 예" in prompt

    def test_learning_context_skipped_when_empty(self):
        prompt, _ = build_generation_prompt(
            {"mainKeyword": "강남 PT", "topBlogsLearning": {"successfulBlogs": 0}}
        )

        assert "상위노출 블로그" not in prompt


class TestOtherPrompts:
    """키워드/수정 프롬프트."""

    def test_keyword_prompt_defaults(self):
        prompt = build_keyword_prompt("강남 PT")

        assert "메인 키워드: 강남 PT" in prompt
        assert "업종: 피트니스" in prompt
        assert "매우 중요" not in prompt

    def test_keyword_prompt_with_image_analysis(self):
        prompt = build_keyword_prompt("강남 PT", category="필라테스", image_analysis="나" * 1000)

        assert "업종: 필라테스" in prompt
        assert "나" * 800 in prompt
        assert "나" * 801 not in prompt
        assert "매우 중요" in prompt

    def test_modify_prompt(self):
        prompt = build_modify_prompt("기존 본문", "더 짧게")

        assert "【수정 요청】더 짧게" in prompt
        assert "【기존 글】\n기존 본문" in prompt
