"""
Unit tests for AI tasks: prompt building and result parsing.
"""

from src.ai.prompts import WILDCARD_SYSTEM_INSTRUCTION
from src.ai.prompts.wildcard_expansion import TRUNCATION_MARKER
from src.ai.tasks import (
    PromptDecompositionTask,
    TagAnalysisTask,
    WildcardExpansionInput,
    WildcardExpansionTask,
    row_summary,
)
from src.store.models import DECOMPOSITION_FIELDS, DecomposedRow, TagAnalysis


class TestTagAnalysisTask:
    """Tests for TagAnalysisTask."""

    def setup_method(self):
        self.task = TagAnalysisTask()

    def test_prompt_lists_words(self):
        prompt = self.task.build_prompt(["blue hair", "maid outfit"])
        assert prompt.endswith("blue hair\nmaid outfit")

    def test_parse_object(self):
        result = self.task.parse_result({
            "base": ["blue hair", "red eyes"],
            "variations": [{"name": "Maid", "prompts": ["maid outfit", "apron"]}],
        })

        assert result.base == ["blue hair", "red eyes"]
        assert len(result.variations) == 1
        assert result.variations[0].name == "Maid"
        assert result.variations[0].prompts == ["maid outfit", "apron"]

    def test_parse_string_base(self):
        """Comma-separated strings are split into words."""
        result = self.task.parse_result({
            "base": "blue hair, red eyes , ",
            "variations": [{"name": "Swim", "prompts": "bikini, sandals"}],
        })

        assert result.base == ["blue hair", "red eyes"]
        assert result.variations[0].prompts == ["bikini", "sandals"]

    def test_parse_list_is_merged(self):
        """A list of objects becomes one analysis without duplicate base words."""
        result = self.task.parse_result([
            {"base": ["blue hair"], "variations": [{"name": "A", "prompts": ["x"]}]},
            {"base": ["blue hair", "red eyes"], "variations": [{"name": "B", "prompts": ["y"]}]},
            "garbage",
        ])

        assert result.base == ["blue hair", "red eyes"]
        assert [v.name for v in result.variations] == ["A", "B"]

    def test_unnamed_variations_get_numbered(self):
        result = self.task.parse_result({
            "base": [],
            "variations": [{"prompts": ["a"]}, {"name": "  ", "prompts": ["b"]}, {"name": "", "prompts": []}],
        })

        assert [v.name for v in result.variations] == ["Variation 1", "Variation 2"]

    def test_unexpected_output(self):
        result = self.task.parse_result("not an object")
        assert result == TagAnalysis()
        assert self.task.validate_output(result) is False

    def test_validate(self):
        assert self.task.validate_output(TagAnalysis(base=["x"])) is True
        assert self.task.validate_output(TagAnalysis()) is False
        assert self.task.validate_output(None) is False


class TestPromptDecompositionTask:
    """Tests for PromptDecompositionTask."""

    def setup_method(self):
        self.task = PromptDecompositionTask()

    def test_prompt_names_fields_and_lines(self):
        prompt = self.task.build_prompt(["1girl, beach", "1boy, city"])

        assert ", ".join(DECOMPOSITION_FIELDS) in prompt
        assert prompt.endswith("1girl, beach\n1boy, city")

    def test_parse_rows(self):
        rows = self.task.parse_result([
            {"character": "1girl", "place": "beach", "unknownKey": "dropped"},
            {"character": "1boy", "clothing": ["suit", "tie"], "sound": None},
            42,
        ])

        assert len(rows) == 2
        assert rows[0].character == "1girl"
        assert rows[0].summary == "1girl, beach"
        assert rows[1].clothing == "suit, tie"
        assert rows[1].sound == ""
        assert rows[0].id != rows[1].id
        assert all(len(r.id) == 9 for r in rows)

    def test_model_id_is_replaced(self):
        rows = self.task.parse_result({"id": "from-model", "character": "x"})
        assert len(rows) == 1
        assert rows[0].id != "from-model"

    def test_validate(self):
        assert self.task.validate_output([]) is False
        assert self.task.validate_output(self.task.parse_result([{"character": "x"}])) is True

    def test_row_summary_skips_blank_columns(self):
        row = DecomposedRow(id="abc", character="1girl", expression="  ", others="masterpiece")
        assert row_summary(row) == "1girl, masterpiece"


class TestWildcardExpansionTask:
    """Tests for WildcardExpansionTask."""

    def setup_method(self):
        self.task = WildcardExpansionTask()

    def test_plain_text_mode(self):
        assert self.task.json_mode is False
        assert self.task.get_system_instruction(None) == WILDCARD_SYSTEM_INSTRUCTION

    def test_short_list_is_sent_whole(self):
        prompt = self.task.build_prompt(WildcardExpansionInput(lines=["red", "blue"], directive="pastels"))

        assert prompt.startswith("Dataset Sample:\nred\nblue")
        assert TRUNCATION_MARKER not in prompt
        assert prompt.endswith("User Directive: Expand themes: pastels")

    def test_long_list_is_truncated(self):
        lines = [f"item {i}" for i in range(40)]
        prompt = self.task.build_prompt(WildcardExpansionInput(lines=lines, directive="more"))

        assert TRUNCATION_MARKER in prompt
        assert "item 9\n" not in prompt
        assert "item 10\n" in prompt
        assert "item 39" in prompt

    def test_parse_strips_bullets_and_fences(self):
        result = self.task.parse_result("```\n- one\n* two\n\n  three  \n```")
        assert result == ["one", "two", "three"]

    def test_parse_non_text(self):
        assert self.task.parse_result({"lines": []}) == []
