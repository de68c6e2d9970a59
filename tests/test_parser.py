"""
Test Suite for the MCQ Text Parser
==================================
Unit tests for models, normalization, identifier/body/option extraction,
gap inference and validation.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from mcq_ocr.models import (
    Diagnostic,
    DiagnosticSeverity,
    DiagnosticType,
    Option,
    Question,
)
from mcq_ocr.normalizer import normalize_text
from mcq_ocr.text_parser import (
    QUESTION_ID_PATTERN,
    BodyStrategy,
    MCQTextParser,
    extract_labeled_options,
    extract_question_body,
    extract_question_id,
    find_option_start,
    infer_missing_options,
    locate_option_markers,
    match_option_label,
)
from mcq_ocr.validator import ValidationEngine

END_TO_END_TEXT = (
    "Q302. A developer wants to build an application... over fifty chars "
    "long here (A) Option one long enough text (B) Option two long enough "
    "text (C) Option three long enough text (D) Option four long enough text"
)

MISSING_B_TEXT = (
    "Q215. A company collects survey responses that contain personal data.\n"
    "The company needs to detect PII in the responses. "
    "Which solution will meet these requirements?\n"
    "(A) Send the survey responses to Amazon Macie for classification.\n"
    "Use a subset of the survey responses to train an Amazon Comprehend "
    "custom entity recognition to identify PII data in the survey responses.\n"
    "(C) Store the survey responses in Amazon S3 and run an AWS Glue crawler.\n"
    "(D) Build a custom regular expression filter in AWS Lambda."
)

RECOVERED_B = (
    "Use a subset of the survey responses to train an Amazon Comprehend "
    "custom entity recognition to identify PII data in the survey responses."
)


def _question(body: str = "", options: tuple = (), **kwargs) -> Question:
    return Question(
        question_id="Q1",
        source_name="q1.png",
        question_body=body,
        options=options,
        **kwargs,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# MODEL TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestQuestionModel:
    """Test Option/Question models."""

    def test_options_sorted_by_id(self):
        q = _question(options=(
            Option(id="C", text="third option"),
            Option(id="A", text="first option"),
            Option(id="B", text="second option"),
        ))
        assert q.option_ids == ["A", "B", "C"]

    def test_duplicate_option_ids_rejected(self):
        with pytest.raises(ValidationError):
            _question(options=(
                Option(id="A", text="first option"),
                Option(id="A", text="again first"),
            ))

    def test_invalid_option_id_rejected(self):
        with pytest.raises(ValidationError):
            Option(id="E", text="fifth option")

    def test_empty_option_text_rejected(self):
        with pytest.raises(ValidationError):
            Option(id="A", text="")

    def test_question_is_frozen(self):
        q = _question(body="What is S3?")
        with pytest.raises(ValidationError):
            q.question_body = "changed"

    def test_computed_fields_serialized(self):
        q = _question(
            body="What is S3?",
            options=(Option(id="A", text="Object storage"),),
            raw_text="Q1 What is S3?",
        )
        data = q.model_dump()
        assert data["option_count"] == 1
        assert data["has_raw_text"] is True
        assert data["options"][0] == {"id": "A", "text": "Object storage"}

    def test_empty_question_id_rejected(self):
        with pytest.raises(ValidationError):
            Question(question_id="", source_name="x.png")


# ═══════════════════════════════════════════════════════════════════════════════
# NORMALIZER TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestNormalizer:
    """Test OCR text normalization."""

    SAMPLES = [
        "",
        "   ",
        "Q302.\n\nA developer\twants   to |ntegrate\n(A) one\r\n(B) two  ",
        MISSING_B_TEXT,
        "|||  \n\n\n |",
        "already normalized text",
    ]

    @pytest.mark.parametrize("text", SAMPLES)
    def test_idempotent(self, text):
        once = normalize_text(text)
        assert normalize_text(once) == once

    @pytest.mark.parametrize("text", SAMPLES)
    def test_single_line_single_spaces(self, text):
        result = normalize_text(text)
        assert "\n" not in result
        assert "  " not in result
        assert result == result.strip()

    def test_vertical_bar_becomes_capital_i(self):
        assert normalize_text("| am sure |t works") == "I am sure It works"

    def test_newlines_collapse_to_one_space(self):
        assert normalize_text("line one\n\n\nline two") == "line one line two"

    def test_no_other_substitutions(self):
        assert normalize_text("0O l1 rn") == "0O l1 rn"


# ═══════════════════════════════════════════════════════════════════════════════
# IDENTIFIER TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestQuestionId:
    """Test question identifier extraction."""

    def test_pattern(self):
        assert QUESTION_ID_PATTERN.search("Q302. A developer")
        assert QUESTION_ID_PATTERN.search("see E12 below")
        assert QUESTION_ID_PATTERN.search("q1234")

        assert not QUESTION_ID_PATTERN.search("Q1 is too short")
        assert not QUESTION_ID_PATTERN.search("Q12345 is too long")
        assert not QUESTION_ID_PATTERN.search("REQ302 is glued")

    def test_extracts_bounded_token(self):
        text = "Q302. A developer wants to build an application"
        match = extract_question_id(text, "shot.png")
        assert match.question_id == "Q302"
        assert not match.synthesized
        assert text[match.body_offset:].startswith("A developer")

    def test_preserves_case(self):
        match = extract_question_id("Question e123 about storage", "x.png")
        assert match.question_id == "e123"

    def test_first_match_wins(self):
        match = extract_question_id("Q10 then Q20", "x.png")
        assert match.question_id == "Q10"

    def test_fallback_from_source_name(self):
        match = extract_question_id("no identifier here", "screenshot_7.png")
        assert match.question_id == "Q_screenshot_7"
        assert match.synthesized
        assert match.body_offset == 0

    def test_fallback_uppercase_extension(self):
        match = extract_question_id("nothing", "IMG_0042.PNG")
        assert match.question_id == "Q_IMG_0042"


# ═══════════════════════════════════════════════════════════════════════════════
# QUESTION BODY TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestQuestionBody:
    """Test the ordered body extraction strategies."""

    def test_option_start_signals(self):
        assert find_option_start("text (B) more") == 5
        assert find_option_start("text C. more") == 5
        assert find_option_start("text D) more") == 5
        assert find_option_start("so Use Amazon S3 now") == 3
        assert find_option_start("DynamoDB. no marker here") is None

    def test_boundary_signal(self):
        text = normalize_text(MISSING_B_TEXT)
        match = extract_question_id(text, "x.png")
        result = extract_question_body(text[match.body_offset:])

        assert result.strategy == BodyStrategy.BOUNDARY_SIGNAL
        assert result.body.startswith("A company collects survey responses")
        assert result.body.endswith("Which solution will meet these requirements?")
        assert "(A)" not in result.body

    def test_body_excludes_options(self):
        text = normalize_text(
            "Q302. A developer wants to use a survey tool and must keep the "
            "responses private at all times. (A) Use a subset of the survey "
            "responses to train a model"
        )
        match = extract_question_id(text, "x.png")
        result = extract_question_body(text[match.body_offset:])

        assert result.body.startswith("A developer wants")
        assert "Use a subset" not in result.body

    def test_short_boundary_falls_back_to_question_mark(self):
        result = extract_question_body("What is the best class? (A) S3 Standard")
        assert result.strategy == BodyStrategy.QUESTION_MARK_BOUNDARY
        assert result.body == "What is the best class?"

    def test_question_mark_is_first_one(self):
        result = extract_question_body("Why? Because. What? Nothing.")
        assert result.body == "Why?"

    def test_raw_prefix_fallback(self):
        text = (
            "This screenshot contains only a long paragraph of text "
            "without any option markers at all"
        )
        result = extract_question_body(text)
        assert result.strategy == BodyStrategy.RAW_PREFIX
        assert result.body == text

    def test_raw_prefix_truncates(self):
        result = extract_question_body("word " * 200)
        assert result.strategy == BodyStrategy.RAW_PREFIX
        assert len(result.body) <= 500

    def test_nothing_usable(self):
        result = extract_question_body("tiny text")
        assert result.body == ""
        assert result.strategy is None

    def test_leading_non_letters_stripped(self):
        result = extract_question_body("-- 42 ... What should the team do?")
        assert result.body == "What should the team do?"


# ═══════════════════════════════════════════════════════════════════════════════
# LABELED OPTION TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestLabeledOptions:
    """Test option extraction from label markers."""

    def test_parenthesized_labels(self):
        text = (
            "(A) Use Amazon S3 Standard (B) Use Amazon S3 Glacier "
            "(C) Use Amazon EBS volumes (D) Use Amazon EFS file system"
        )
        options = extract_labeled_options(text)
        assert [o.id for o in options] == ["A", "B", "C", "D"]
        assert [o.text for o in options] == [
            "Use Amazon S3 Standard",
            "Use Amazon S3 Glacier",
            "Use Amazon EBS volumes",
            "Use Amazon EFS file system",
        ]

    def test_one_word_options_fall_under_length_floor(self):
        # Option texts must be longer than five characters
        text = normalize_text("(A) foo (B) bar (C) baz (D) qux")
        assert extract_labeled_options(text) == []

    def test_letter_dot_labels(self):
        text = (
            "Q10. Which service stores objects durably at low cost for "
            "archives? A. Amazon S3 Glacier B. Amazon EBS "
            "C. Amazon EC2 instance store D. Amazon RDS"
        )
        options = extract_labeled_options(text)
        assert [(o.id, o.text) for o in options] == [
            ("A", "Amazon S3 Glacier"),
            ("B", "Amazon EBS"),
            ("C", "Amazon EC2 instance store"),
            ("D", "Amazon RDS"),
        ]

    def test_letters_inside_words_are_not_labels(self):
        text = "(A) Store the items in DynamoDB. Then index them (B) Use Amazon RDS"
        options = extract_labeled_options(text)
        assert options[0].text == "Store the items in DynamoDB. Then index them"
        assert options[1].text == "Use Amazon RDS"

    def test_longest_capture_wins(self):
        # The "(A)" shape cannot cross the parenthesis, the loose shape can
        text = "(A) Encrypt the bucket (with SSE-KMS) keys (B) Leave it as is"
        assert match_option_label(text, "A") == "Encrypt the bucket (with SSE-KMS) keys"

    def test_short_options_discarded(self):
        options = extract_labeled_options("(A) Yes (B) Use Amazon S3 Standard")
        assert [o.id for o in options] == ["B"]

    def test_no_labels(self):
        assert extract_labeled_options("plain text without options") == []


# ═══════════════════════════════════════════════════════════════════════════════
# GAP INFERENCE TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestGapInference:
    """Test recovery of options whose label marker was lost."""

    def test_locate_markers_in_text_order(self):
        text = "(C) third option (A) first option"
        options = [
            Option(id="A", text="first option"),
            Option(id="C", text="third option"),
        ]
        assert locate_option_markers(text, options) == [
            ("C", 0, 3),
            ("A", 17, 20),
        ]

    def test_recovers_option_between_markers(self):
        text = normalize_text(MISSING_B_TEXT)
        labeled = extract_labeled_options(text)
        assert [o.id for o in labeled] == ["A", "C", "D"]

        result = infer_missing_options(text, labeled)
        by_id = {o.id: o.text for o in result.options}

        assert [o.id for o in result.options] == ["A", "B", "C", "D"]
        assert by_id["B"] == RECOVERED_B
        assert result.inferred == {"B": "gap"}

    def test_swallowed_text_trimmed_from_previous_option(self):
        text = normalize_text(MISSING_B_TEXT)
        result = infer_missing_options(text, extract_labeled_options(text))
        option_a = result.options[0]
        assert option_a.text == (
            "Send the survey responses to Amazon Macie for classification."
        )

    def test_sentence_scan_fallback(self):
        text = normalize_text(
            "E42. Which approach should the team take to reduce the cost of "
            "the nightly batch jobs? (A) Use Spot Instances for the batch "
            "workers. Migrate the batch jobs to a scheduled container task."
        )
        labeled = extract_labeled_options(text)
        assert [o.id for o in labeled] == ["A"]

        result = infer_missing_options(text, labeled)
        assert [o.id for o in result.options] == ["A", "B"]
        assert result.options[1].text == (
            "Migrate the batch jobs to a scheduled container task."
        )
        assert result.inferred == {"B": "sentence_scan"}

    def test_sentence_scan_text_trimmed_from_labeled_option(self):
        text = normalize_text(
            "E42. Which approach should the team take to reduce the cost of "
            "the nightly batch jobs? (A) Use Spot Instances for the batch "
            "workers. Migrate the batch jobs to a scheduled container task."
        )
        result = infer_missing_options(text, extract_labeled_options(text))
        option_a, option_b = result.options

        assert option_a.text == "Use Spot Instances for the batch workers."
        assert option_b.text not in option_a.text

    def test_duplicates_of_existing_options_skipped(self):
        text = "(A) Use Amazon Macie to classify the survey data. (C) Use."
        options = [Option(id="A", text="Use Amazon Macie to classify the survey data.")]
        result = infer_missing_options(text, options)
        assert [o.id for o in result.options] == ["A"]
        assert result.inferred == {}

    def test_complete_options_untouched(self):
        options = [Option(id=letter, text=f"option {letter} text") for letter in "DCBA"]
        result = infer_missing_options("irrelevant", options)
        assert [o.id for o in result.options] == ["A", "B", "C", "D"]
        assert result.inferred == {}


# ═══════════════════════════════════════════════════════════════════════════════
# PARSER TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestMCQTextParser:
    """End-to-end tests of the text parser."""

    def test_end_to_end(self):
        outcome = MCQTextParser().parse(END_TO_END_TEXT, "q302.png")
        q = outcome.question

        assert q.question_id == "Q302"
        assert q.source_name == "q302.png"
        assert q.option_ids == ["A", "B", "C", "D"]
        assert q.options[0].text == "Option one long enough text"
        assert q.options[3].text == "Option four long enough text"
        assert q.question_body == (
            "A developer wants to build an application... over fifty chars long here"
        )
        assert "Option" not in q.question_body
        assert q.raw_text == END_TO_END_TEXT
        assert outcome.body_strategy == BodyStrategy.BOUNDARY_SIGNAL
        assert outcome.diagnostics == []

    def test_missing_option_recovered(self):
        outcome = MCQTextParser().parse(MISSING_B_TEXT, "q215.png")
        q = outcome.question
        types = [d.type for d in outcome.diagnostics]

        assert q.question_id == "Q215"
        assert q.option_ids == ["A", "B", "C", "D"]
        assert q.options[1].text == RECOVERED_B
        assert DiagnosticType.MISSING_LABELED_OPTIONS in types
        assert DiagnosticType.INFERRED_OPTION in types

    def test_raw_text_preserved_unmodified(self):
        outcome = MCQTextParser().parse(MISSING_B_TEXT, "q215.png")
        assert outcome.question.raw_text == MISSING_B_TEXT

    def test_synthesized_id_reported(self):
        outcome = MCQTextParser().parse("garbled", "scan_01.png")
        assert outcome.question.question_id == "Q_scan_01"
        assert outcome.diagnostics[0].type == DiagnosticType.SYNTHESIZED_QUESTION_ID

    def test_low_confidence_still_returned(self):
        outcome = MCQTextParser().parse("garbled", "scan_01.png")
        q = outcome.question
        types = [d.type for d in outcome.diagnostics]

        assert q.question_body == ""
        assert q.options == ()
        assert DiagnosticType.SHORT_QUESTION_TEXT in types
        assert DiagnosticType.TOO_FEW_OPTIONS in types

    def test_empty_input(self):
        outcome = MCQTextParser().parse("", "blank.png")
        assert outcome.question.question_id == "Q_blank"
        assert outcome.question.question_body == ""


# ═══════════════════════════════════════════════════════════════════════════════
# VALIDATION TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestValidationEngine:
    """Test low-confidence diagnostics and the keep policy."""

    TWO_OPTIONS = (
        Option(id="A", text="first option"),
        Option(id="B", text="second option"),
    )

    def test_confident_question(self):
        q = _question(
            body="Which storage class is cheapest for archives?",
            options=self.TWO_OPTIONS,
        )
        assert ValidationEngine().validate(q) == []

    def test_short_body_flagged(self):
        q = _question(body="Too short", options=self.TWO_OPTIONS)
        diagnostics = ValidationEngine().validate(q)

        assert len(diagnostics) == 1
        assert diagnostics[0].type == DiagnosticType.SHORT_QUESTION_TEXT
        assert diagnostics[0].severity == DiagnosticSeverity.WARNING
        assert diagnostics[0].source_name == "q1.png"

    def test_too_few_options_flagged(self):
        q = _question(
            body="Which storage class is cheapest for archives?",
            options=self.TWO_OPTIONS[:1],
        )
        diagnostics = ValidationEngine().validate(q)
        assert [d.type for d in diagnostics] == [DiagnosticType.TOO_FEW_OPTIONS]

    def test_keep_policy(self):
        validator = ValidationEngine()
        assert validator.is_acceptable(
            _question(body="Short", options=self.TWO_OPTIONS[:1])
        )
        assert not validator.is_acceptable(_question(body="", options=self.TWO_OPTIONS))
        assert not validator.is_acceptable(_question(body="Some body text"))

    def test_keep_policy_min_options(self):
        validator = ValidationEngine(min_options=2)
        assert not validator.is_acceptable(
            _question(body="Some body text", options=self.TWO_OPTIONS[:1])
        )

    def test_diagnostic_serialization(self):
        d = Diagnostic(
            severity=DiagnosticSeverity.WARNING,
            source_name="a.png",
            type=DiagnosticType.TOO_FEW_OPTIONS,
            message="Only found 1 options for a.png",
        )
        data = d.model_dump(mode="json")
        assert data["severity"] == "warning"
        assert data["type"] == "too_few_options"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
