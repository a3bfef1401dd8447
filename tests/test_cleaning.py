"""Tests for article text cleaning and garbage detection.

测试文本清洗：去噪声 / 去尾部 / 全大写横幅 / 垃圾文本判定。
"""

import pytest

from topic_digest.cleaning import MIN_USABLE_LENGTH, clean, is_garbage

SENTENCE = (
    "The Federal Reserve held interest rates steady on Wednesday, citing continued "
    "progress on inflation and a resilient labor market."
)


class TestClean:
    """清洗测试"""

    def test_empty(self):
        assert clean("") == ""

    def test_strip_char_count_tag(self):
        """去 [+1234 chars] 标记"""
        assert clean("Stocks rose on Monday after the Fed held rates. [+1234 chars]") == \
               "Stocks rose on Monday after the Fed held rates."

    def test_strip_share_buttons(self):
        assert clean("Share on Facebook The council approved the budget.") == \
               "The council approved the budget."

    def test_strip_read_more_tail(self):
        """READ MORE 之后全部丢弃"""
        assert clean("The team won the title. READ MORE: Five takeaways from the game") == \
               "The team won the title."

    def test_strip_subscribe_tail(self):
        assert clean("Prices fell again. Subscribe to our newsletter for more.") == "Prices fell again."

    def test_strip_copyright_tail(self):
        assert clean("Rain is expected all week. Copyright 2024 Reuters. All rights reserved.") == \
               "Rain is expected all week."

    def test_trailing_ellipsis(self):
        assert clean("The council approved the budget...") == "The council approved the budget"
        assert clean("The council approved the budget…") == "The council approved the budget"

    def test_collapse_whitespace(self):
        assert clean("Line one.\n\n  Line   two.") == "Line one. Line two."

    def test_all_caps_banner_recovers_first_sentence(self):
        """全大写横幅：保留第一个真正的句子"""
        text = "BREAKING NEWS UPDATE TODAY. The senate passed the bill. Debate continues."
        assert clean(text) == "The senate passed the bill."

    @pytest.mark.parametrize("raw", [
        SENTENCE,
        "Markets rallied... READ MORE: what it means",
        "BREAKING NEWS UPDATE TODAY. The senate passed the bill. Debate continues.",
        "Share on Twitter [Reuters] Oil slid 3%. Click here to read the full story",
        "",
    ])
    def test_idempotent(self, raw):
        """clean(clean(x)) == clean(x)"""
        once = clean(raw)
        assert clean(once) == once


class TestIsGarbage:
    """垃圾文本判定测试"""

    def test_real_sentence_is_usable(self):
        assert len(SENTENCE) >= MIN_USABLE_LENGTH
        assert not is_garbage(SENTENCE)

    def test_too_short(self):
        assert is_garbage("The council approved the budget.")

    def test_empty(self):
        assert is_garbage("")

    def test_no_lowercase(self):
        assert is_garbage(SENTENCE.upper())

    def test_no_sentence_punctuation(self):
        assert is_garbage(SENTENCE.replace(".", "").replace(",", ""))

    def test_headline_soup(self):
        """多个标题拼接在一起"""
        text = (
            "Lakers Beat Celtics In Overtime | Warriors Sign Veteran Guard | "
            "Nets Fire Head Coach | Knicks Win Again."
        )
        assert len(text) >= MIN_USABLE_LENGTH
        assert is_garbage(text)

    def test_glued_headlines(self):
        """标题之间没有空格"""
        text = (
            "Lakers Beat Celtics In OvertimeWarriors Sign Veteran GuardNets Fire Head "
            "CoachKnicks Win Again as the season enters its final stretch."
        )
        assert is_garbage(text)

    def test_brand_names_are_not_soup(self):
        text = (
            "Apple said on Tuesday that the new iPhone will ship with YouTube preinstalled, "
            "a change regulators had asked for."
        )
        assert not is_garbage(text)
