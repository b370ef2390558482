"""Tests for the field extraction strategies and pipeline."""

from chatform.core.extraction import (
    ExtractionPipeline,
    clean_response,
    direct_extract,
    extract_from_generated,
    filter_to_current_field,
    has_cancellation_signal,
    has_completion_signal,
    match_option,
    parse_inline_update,
    parse_labelled_summary,
    parse_markers,
    parse_numbered_items,
    select_suggestion,
)
from chatform.core.intents import IntentResult


class TestMarkers:
    """FIELD_COLLECTED markers in generated text."""

    def test_parse_markers(self):
        text = "Got it!\nFIELD_COLLECTED:name=Laravel Basics\nFIELD_COLLECTED:duration=10"

        assert parse_markers(text) == {"name": "Laravel Basics", "duration": "10"}

    def test_markers_on_one_line(self):
        text = "FIELD_COLLECTED:name=Laravel FIELD_COLLECTED:level=beginner"

        assert parse_markers(text) == {"name": "Laravel", "level": "beginner"}

    def test_no_markers(self):
        assert parse_markers("Just chatting") == {}
        assert parse_markers(None) == {}

    def test_summary_only_used_alongside_markers(self, course_config):
        text = "**Course Name**: Laravel Basics\n- **Level:** Advanced (recommended)"

        assert extract_from_generated(text, course_config) == {}
        merged = extract_from_generated(text + "\nFIELD_COLLECTED:duration=10", course_config)
        assert merged == {"duration": "10", "name": "Laravel Basics", "level": "advanced"}

    def test_labelled_summary_maps_labels(self, course_config):
        text = "**Difficulty:** intermediate\n**Course duration in hours**: about 12 hours\n**Unknown**: x"

        assert parse_labelled_summary(text, course_config) == {"level": "intermediate", "duration": "12"}

    def test_clean_response_strips_markers_and_signals(self):
        text = "Thanks!\nFIELD_COLLECTED:name=Laravel\n\n\n\nDATA_COLLECTION_COMPLETE"

        assert clean_response(text) == "Thanks!"
        assert has_completion_signal(text)
        assert not has_cancellation_signal(text)
        assert has_cancellation_signal("bye DATA_COLLECTION_CANCELLED")


class TestFilter:
    """Only the field in focus may be written."""

    def test_keeps_current_field_only(self):
        extracted = {"name": "Laravel", "duration": "10"}

        assert filter_to_current_field(extracted, "name", {}) == {"name": "Laravel"}

    def test_drops_already_collected(self):
        assert filter_to_current_field({"name": "New"}, "name", {"name": "Old"}) == {}

    def test_no_current_field(self):
        assert filter_to_current_field({"name": "New"}, None, {}) == {}


class TestMessageStrategies:
    """Strategies over the raw user message."""

    def test_match_option(self, course_config):
        level = course_config.get_field("level")

        assert match_option(level, "Advanced") == "advanced"
        assert match_option(level, "I'd say intermediate") == "intermediate"
        assert match_option(level, "expert") is None

    def test_direct_extract(self, course_config):
        name = course_config.get_field("name")
        duration = course_config.get_field("duration")

        assert direct_extract(name, "  Laravel Basics ") == "Laravel Basics"
        assert direct_extract(name, "what should I write?") is None
        assert direct_extract(name, "x") is None
        assert direct_extract(duration, "about 12.5 hours") == "12.5"
        assert direct_extract(duration, "-5") == "-5"
        assert direct_extract(duration, "1,500") == "1,500"
        assert direct_extract(duration, "10 to 12 hours") == "10 to 12 hours"
        assert direct_extract(duration, "how long?") is None

    def test_inline_updates(self, course_config):
        assert parse_inline_update("change the level to beginner", course_config) == ("level", "beginner")
        assert parse_inline_update("please set duration to 12 hours", course_config) == ("duration", "12")
        assert parse_inline_update("the course name should be Vue Basics", course_config) == ("name", "Vue Basics")
        assert parse_inline_update("Title: Go Fundamentals", course_config) == ("name", "Go Fundamentals")
        assert parse_inline_update("change the weather to sunny", course_config) is None

    def test_numbered_items(self):
        text = "Here you go:\n1. **Laravel Basics**\n2) Vue Masterclass\n3 - Go for Beginners\nThanks"

        assert parse_numbered_items(text) == ["Laravel Basics", "Vue Masterclass", "Go for Beginners"]

    def test_select_suggestion(self):
        items = ["a", "b", "c"]

        assert select_suggestion("2", items) == "b"
        assert select_suggestion(" 3. ", items) == "c"
        assert select_suggestion("4", items) is None
        assert select_suggestion("0", items) is None
        assert select_suggestion("two", items) is None
        assert select_suggestion("٢", items) == "b"


class TestPipeline:
    """Fixed strategy order, first success wins."""

    def setup_method(self):
        self.pipeline = ExtractionPipeline()

    def test_marker_wins_over_intent(self, course_config):
        intent = IntentResult(intent="provide_value", extracted_value="From intent")

        result = self.pipeline.run(
            "raw message",
            course_config,
            "name",
            {},
            intent=intent,
            generated_text="FIELD_COLLECTED:name=From marker",
        )

        assert (result.field, result.value, result.source) == ("name", "From marker", "marker")

    def test_summary_used_when_markers_miss_current_field(self, course_config):
        generated = "FIELD_COLLECTED:duration=10\n**Course Name**: From summary"

        result = self.pipeline.run("raw", course_config, "name", {}, generated_text=generated)

        assert (result.value, result.source) == ("From summary", "summary")

    def test_intent_value_normalized(self, course_config):
        intent = IntentResult(intent="provide_value", extracted_value="Beginner")

        result = self.pipeline.run("I'm new", course_config, "level", {}, intent=intent)

        assert (result.value, result.source) == ("beginner", "intent")

    def test_direct_fallback(self, course_config):
        result = self.pipeline.run("Laravel Basics", course_config, "name", {})

        assert (result.value, result.source) == ("Laravel Basics", "direct")

    def test_non_value_intent_extracts_nothing(self, course_config):
        intent = IntentResult(intent="question")

        assert self.pipeline.run("what is this?", course_config, "name", {}, intent=intent) is None

    def test_modification_short_circuits(self, course_config):
        result = self.pipeline.run(
            "I want to change the name",
            course_config,
            "duration",
            {"name": "Laravel"},
            generated_text="FIELD_COLLECTED:duration=10",
            is_modification=True,
        )

        assert result is None

    def test_no_current_field(self, course_config):
        assert self.pipeline.run("Laravel", course_config, None, {}) is None
