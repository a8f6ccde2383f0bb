"""Tests for the rule-based FieldExtractor."""

from __future__ import annotations

import pytest

from poikit.rules import FieldExtractor, normalize_lines


@pytest.fixture
def extractor() -> FieldExtractor:
    return FieldExtractor()


@pytest.mark.unit
class TestNormalizeLines:
    def test_trims_and_drops_empty(self):
        assert normalize_lines("  a \n\n\t\nb  \r\n c") == ["a", "b", "c"]


@pytest.mark.unit
class TestScenarios:
    """End-to-end rule extraction over realistic signage text."""

    def test_brand_and_branch_joined_with_phone(self, extractor, curry_text):
        candidate = extractor.extract(curry_text)
        assert candidate.name == "アパ社長カレー 横浜ベイタワー店"
        assert candidate.phone_number == "045-123-4567"
        assert candidate.category == "カレー店"
        assert candidate.confidence == pytest.approx(3 / 6)

    def test_split_address_continuation_absorbed(self, extractor, cafe_text):
        candidate = extractor.extract(cafe_text)
        assert candidate.address == "東京都港区六本木1-2-3"
        assert candidate.category == "カフェ"
        assert candidate.name == "カフェ ABC"

    def test_deterministic(self, extractor, curry_text):
        assert extractor.extract(curry_text) == extractor.extract(curry_text)

    def test_empty_text(self, extractor):
        candidate = extractor.extract("")
        assert candidate.field_count == 0
        assert candidate.confidence == 0.0
        assert candidate.has_valid_data is False


@pytest.mark.unit
class TestPhone:
    def test_unlabelled_number(self, extractor):
        assert extractor.extract("Foo\n045-123-4567").phone_number == "045-123-4567"

    def test_fullwidth_parentheses_normalized(self, extractor):
        candidate = extractor.extract("TEL（03）1234-5678")
        assert candidate.phone_number == "(03)1234-5678"

    def test_phone_line_not_used_for_name(self, extractor):
        candidate = extractor.extract("電話 06-1111-2222\n串カツ 大吉")
        assert candidate.name == "串カツ 大吉"


@pytest.mark.unit
class TestAddress:
    def test_labelled(self, extractor):
        candidate = extractor.extract("住所：大阪府大阪市北区梅田1-1-1")
        assert candidate.address == "大阪府大阪市北区梅田1-1-1"

    def test_postal_code_prefix(self, extractor):
        candidate = extractor.extract("〒231-0001 神奈川県横浜市中区新港2-2-1")
        assert candidate.address == "〒231-0001 神奈川県横浜市中区新港2-2-1"

    def test_floor_continuation(self, extractor):
        candidate = extractor.extract("京都府京都市中京区河原町通\n2階")
        assert candidate.address == "京都府京都市中京区河原町通2階"

    def test_bare_label_takes_next_line(self, extractor):
        candidate = extractor.extract("所在地\n北海道札幌市中央区北1条西2丁目")
        assert candidate.address == "北海道札幌市中央区北1条西2丁目"

    def test_non_continuation_line_left_for_name(self, extractor):
        candidate = extractor.extract("福岡県福岡市博多区\n博多ラーメン 一番")
        assert candidate.address == "福岡県福岡市博多区"
        assert candidate.name == "博多ラーメン 一番"


@pytest.mark.unit
class TestHoursAndPrice:
    def test_labelled_hours(self, extractor):
        candidate = extractor.extract("営業時間 11:00〜22:00")
        assert candidate.business_hours == "11:00〜22:00"

    def test_bare_hours_label_takes_next_line(self, extractor):
        candidate = extractor.extract("営業時間\n11:00-22:00")
        assert candidate.business_hours == "11:00-22:00"

    def test_unlabelled_time_range(self, extractor):
        candidate = extractor.extract("喫茶 さくら\n7:30〜18:00")
        assert candidate.business_hours == "7:30〜18:00"
        assert candidate.name == "喫茶 さくら"

    def test_yen_price_range(self, extractor):
        candidate = extractor.extract("¥800〜¥1,500")
        assert candidate.price_range == "¥800〜¥1,500"

    def test_en_suffix_price_range(self, extractor):
        candidate = extractor.extract("予算 3,000円〜5,000円")
        assert candidate.price_range == "3,000円〜5,000円"


@pytest.mark.unit
class TestCategory:
    def test_first_table_entry_wins(self):
        assert FieldExtractor.infer_category("カレーうどん") == "カレー店"

    def test_case_insensitive_ascii_keywords(self):
        assert FieldExtractor.infer_category("SUSHI BAR") == "寿司店"

    def test_no_match(self):
        assert FieldExtractor.infer_category("山田商店") is None

    def test_scans_lines_claimed_by_other_passes(self, extractor):
        candidate = extractor.extract("Tanaka\nOPEN 11:00-20:00 curry & rice")
        assert candidate.business_hours == "11:00-20:00 curry & rice"
        assert candidate.category == "カレー店"
        assert candidate.name == "Tanaka"


@pytest.mark.unit
class TestName:
    def test_info_keyword_lines_excluded(self, extractor):
        candidate = extractor.extract("麺屋 ひなた\n定休日 月曜日\nwww.hinata.jp")
        assert candidate.name == "麺屋 ひなた"

    def test_numeric_and_single_char_lines_skipped(self, extractor):
        candidate = extractor.extract("★\n2024\n鮨 まつもと")
        assert candidate.name == "鮨 まつもと"
        assert candidate.category == "寿司店"

    def test_at_most_three_lines_joined(self, extractor):
        candidate = extractor.extract("AA\nBB\nCC\nDD")
        assert candidate.name == "AA BB CC"

    def test_max_name_lines_configurable(self):
        candidate = FieldExtractor(max_name_lines=1).extract("AA\nBB")
        assert candidate.name == "AA"
