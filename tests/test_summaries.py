"""Tests for data summaries and action previews."""

from chatform.core.summaries import SummaryBuilder, data_summary, static_action_summary
from chatform.llm.client import GenerationResult

DATA = {"name": "Laravel Basics", "duration": "10", "level": "advanced"}


class TestStaticSummaries:
    def test_data_summary_lists_every_field(self, course_config):
        text = data_summary(course_config, DATA)

        assert text.splitlines() == [
            "## Summary: New Course",
            "",
            "**Name**: Laravel Basics",
            "**Duration**: 10",
            "**Level**: advanced",
            "**Summary** (optional): (not provided)",
        ]

    def test_data_summary_is_localized(self, course_config):
        assert data_summary(course_config, DATA, "ar").startswith("## ملخص: New Course")

    def test_action_summary_placeholders(self, make_config):
        config = make_config(action_summary="This will create '{name}' ({duration}h, {level}).")

        assert static_action_summary(config, DATA) == "This will create 'Laravel Basics' (10h, advanced)."

    def test_default_action_line(self, course_config):
        text = static_action_summary(course_config, DATA)

        assert text == "This will complete the 'New Course' process with the information you provided."


class TestSummaryBuilder:
    """Model-generated previews with static fallbacks."""

    def test_no_prompt_means_no_call(self, generator, course_config):
        builder = SummaryBuilder(generator)

        assert builder.summary(course_config, DATA).startswith("## Summary")
        assert builder.action_summary(course_config, DATA).startswith("This will complete")
        assert generator.calls == []

    def test_generated_summary(self, generator, make_config):
        config = make_config(summary_prompt="Summarize the course briefly")
        generator.script("Summarize the course briefly", "  A 10 hour advanced Laravel course.  ")

        text = SummaryBuilder(generator).summary(config, DATA, "tr")

        assert text == "A 10 hour advanced Laravel course."
        assert generator.calls[0]["system"] == "Always respond in Turkish."

    def test_action_summary_carries_modifications(self, generator, make_config):
        config = make_config(action_summary_prompt="Describe the course plan")
        generator.script("Describe the course plan", "Five lessons.")

        text = SummaryBuilder(generator).action_summary(config, DATA, modifications=["add a testing lesson"])

        assert text == "Five lessons."
        assert "- add a testing lesson" in generator.calls[0]["user"]

    def test_generation_failure_falls_back(self, generator, make_config):
        config = make_config(
            action_summary_prompt="Describe the course plan",
            action_summary="Create {name}.",
        )
        generator.script("Describe the course plan", GenerationResult.failed("timeout"))

        assert SummaryBuilder(generator).action_summary(config, DATA) == "Create Laravel Basics."
