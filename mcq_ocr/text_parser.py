"""
Structural Parser
=================
Turns normalized OCR text into a Question: identifier, question body and
up to four lettered options.

Pipeline:
    raw OCR text → normalize_text → extract_question_id →
    extract_question_body → extract_labeled_options →
    infer_missing_options (only when labels are missing) → Question

Every stage is a pure function of its input text so each one can be
exercised on its own. MCQTextParser wires them together and collects
diagnostics for the caller.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from .models import (
    OPTION_IDS,
    Diagnostic,
    DiagnosticSeverity,
    DiagnosticType,
    Option,
    Question,
)
from .normalizer import collapse_whitespace, normalize_text
from .validator import ValidationEngine

logger = logging.getLogger(__name__)

# ─── Thresholds ───────────────────────────────────────────────────────────────

MIN_BODY_LENGTH = 50
RAW_PREFIX_LENGTH = 500
MIN_OPTION_LENGTH = 5
MIN_GAP_LENGTH = 50
MIN_CHUNK_LENGTH = 30
DUPLICATE_KEY_LENGTH = 30

# ─── Identifier Patterns ──────────────────────────────────────────────────────

# Matches "Q302", "E12", "q1234" as a standalone token
QUESTION_ID_PATTERN = re.compile(r"(?:^|\s)([QE]\d{2,4})\b", re.IGNORECASE)

# Periods/whitespace directly after the identifier ("Q302. ")
ID_TRAILER_PATTERN = re.compile(r"[.\s]*")

PNG_SUFFIX_PATTERN = re.compile(r"\.png$", re.IGNORECASE)

# ─── Option Start Signals ─────────────────────────────────────────────────────

# Phrases that open answer options in the exams this tool is fed
OPTION_PHRASE_PREFIXES = (
    "Use Amazon ",
    "Use an Amazon ",
    "Use AWS ",
    "Use an AWS ",
    "Use a subset of ",
    "Create an Amazon ",
    "Configure Amazon ",
    "Configure an Amazon ",
    "Deploy the application ",
)

OPTION_START_PATTERNS = [
    # "(A)"
    re.compile(r"\([A-D]\)"),
    # "A)" or "A." standing alone
    re.compile(r"(?<!\S)[A-D][\).](?=\s|$)"),
    re.compile(
        r"(?<!\w)(?:"
        + "|".join(re.escape(p) for p in OPTION_PHRASE_PREFIXES)
        + r")"
    ),
]

QUESTION_MARK_PATTERN = re.compile(r"^[^?]*\?")

LEADING_NON_LETTERS_PATTERN = re.compile(r"^[^a-zA-Z]*")

# ─── Option Label Patterns ────────────────────────────────────────────────────

# Next marker: " B)", " (B)", " B." or a glued "(B)"
_NEXT_MARKER = r"(?=\s+\(?[A-D][\).]|\s*\([A-D]\)|$)"


def _label_patterns(letter: str) -> tuple[re.Pattern, ...]:
    return (
        # "(A) text" up to the next "(X)"
        re.compile(rf"\({letter}\)\s*([^(]*?)(?=\s*\([A-D]\)|$)"),
        # " A) text" / " A. text"
        re.compile(rf"\s{letter}[\).]\s*(.*?){_NEXT_MARKER}"),
        # "A) text" anywhere not glued to a word
        re.compile(rf"(?<![A-Za-z0-9]){letter}[\).]\s*(.*?){_NEXT_MARKER}"),
    )


OPTION_LABEL_PATTERNS: dict[str, tuple[re.Pattern, ...]] = {
    letter: _label_patterns(letter) for letter in OPTION_IDS
}

# ─── Gap Inference Patterns ───────────────────────────────────────────────────

ACTION_VERB_PREFIXES = (
    "Use",
    "Send",
    "Create",
    "Build",
    "Configure",
    "Train",
    "Deploy",
    "Implement",
    "Store",
    "Enable",
    "Migrate",
    "Launch",
)

# A chunk containing either of these reads like a service-level answer
GAP_HINT_SUBSTRINGS = ("Amazon", "AWS")

ACTION_VERB_START_PATTERN = re.compile(
    r"^(?:" + "|".join(ACTION_VERB_PREFIXES) + r")\b"
)

ACTION_SENTENCE_PATTERN = re.compile(
    r"\b(?:" + "|".join(ACTION_VERB_PREFIXES) + r")\b[^.!?]*[.!?]?"
)

SENTENCE_SPLIT_PATTERN = re.compile(r"(?<=[.!?])\s+")


# ═══════════════════════════════════════════════════════════════════════════════
# IDENTIFIER
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class IdentifierMatch:
    """Question identifier plus where the question text starts."""
    question_id: str
    body_offset: int = 0
    synthesized: bool = False


def synthesize_question_id(source_name: str) -> str:
    return "Q_" + PNG_SUFFIX_PATTERN.sub("", source_name)


def extract_question_id(text: str, source_name: str) -> IdentifierMatch:
    """
    Find the first "Q302"/"E12" style token in normalized text.

    Falls back to an identifier built from the source file name, so every
    question ends up with a stable non-empty id.
    """
    match = QUESTION_ID_PATTERN.search(text)
    if not match:
        return IdentifierMatch(
            question_id=synthesize_question_id(source_name),
            body_offset=0,
            synthesized=True,
        )

    trailer = ID_TRAILER_PATTERN.match(text, match.end(1))
    return IdentifierMatch(
        question_id=match.group(1),
        body_offset=trailer.end(),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# QUESTION BODY
# ═══════════════════════════════════════════════════════════════════════════════


class BodyStrategy(str, Enum):
    """Question body extraction strategies, in the order they are tried."""
    BOUNDARY_SIGNAL = "boundary_signal"
    QUESTION_MARK_BOUNDARY = "question_mark_boundary"
    RAW_PREFIX = "raw_prefix"


def find_option_start(text: str) -> Optional[int]:
    """Earliest offset of any option start signal, or None."""
    offsets = []
    for pattern in OPTION_START_PATTERNS:
        match = pattern.search(text)
        if match:
            offsets.append(match.start())
    return min(offsets) if offsets else None


def boundary_signal_body(text: str) -> Optional[str]:
    offset = find_option_start(text)
    if offset is None:
        return None
    body = text[:offset].strip()
    return body if len(body) > MIN_BODY_LENGTH else None


def question_mark_body(text: str) -> Optional[str]:
    match = QUESTION_MARK_PATTERN.match(text)
    if not match:
        return None
    body = match.group(0).strip()
    return body or None


def raw_prefix_body(text: str) -> Optional[str]:
    body = text[:RAW_PREFIX_LENGTH].strip()
    return body if len(body) > MIN_BODY_LENGTH else None


BODY_STRATEGIES: tuple[tuple[BodyStrategy, Callable[[str], Optional[str]]], ...] = (
    (BodyStrategy.BOUNDARY_SIGNAL, boundary_signal_body),
    (BodyStrategy.QUESTION_MARK_BOUNDARY, question_mark_body),
    (BodyStrategy.RAW_PREFIX, raw_prefix_body),
)


@dataclass(frozen=True)
class BodyExtraction:
    body: str
    strategy: Optional[BodyStrategy] = None


def clean_fragment(text: str) -> str:
    """Drop leading non-letters and collapse whitespace."""
    return collapse_whitespace(LEADING_NON_LETTERS_PATTERN.sub("", text))


def extract_question_body(text: str) -> BodyExtraction:
    """
    Run the body strategies in order on the text that follows the
    identifier and return the first usable result, cleaned.
    """
    for strategy, extract in BODY_STRATEGIES:
        candidate = extract(text)
        if candidate is not None:
            return BodyExtraction(body=clean_fragment(candidate), strategy=strategy)
    return BodyExtraction(body="")


# ═══════════════════════════════════════════════════════════════════════════════
# LABELED OPTIONS
# ═══════════════════════════════════════════════════════════════════════════════


def match_option_label(text: str, letter: str) -> Optional[str]:
    """
    Longest trimmed capture among the label shapes for one letter.
    Ties go to the earlier shape.
    """
    captures = []
    for pattern in OPTION_LABEL_PATTERNS[letter]:
        match = pattern.search(text)
        if match and match.group(1).strip():
            captures.append(match.group(1).strip())
    return max(captures, key=len, default=None)


def extract_labeled_options(text: str) -> list[Option]:
    """Options whose letter marker survived OCR, at most one per letter."""
    options: list[Option] = []
    for letter in OPTION_IDS:
        capture = match_option_label(text, letter)
        if capture is None:
            continue
        option_text = clean_fragment(capture)
        if len(option_text) > MIN_OPTION_LENGTH:
            options.append(Option(id=letter, text=option_text))
        else:
            logger.debug(f"Discarding short option {letter}: {option_text!r}")
    return options


# ═══════════════════════════════════════════════════════════════════════════════
# GAP INFERENCE
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class _Candidate:
    text: str
    method: str
    # Letter whose marker opens the gap the text was found in
    opener: Optional[str] = None


@dataclass
class InferenceResult:
    options: list[Option]
    # letter -> method ("gap" or "sentence_scan")
    inferred: dict[str, str] = field(default_factory=dict)


def _duplicate_key(text: str) -> str:
    return text[:DUPLICATE_KEY_LENGTH].lower()


def locate_option_markers(
    text: str, options: list[Option]
) -> list[tuple[str, int, int]]:
    """(letter, start, end) of each found option's "(X)" marker, by position."""
    spans = []
    for option in options:
        marker = f"({option.id})"
        start = text.find(marker)
        if start >= 0:
            spans.append((option.id, start, start + len(marker)))
    return sorted(spans, key=lambda span: span[1])


def _is_option_like(chunk: str) -> bool:
    return bool(ACTION_VERB_START_PATTERN.match(chunk)) or any(
        hint in chunk for hint in GAP_HINT_SUBSTRINGS
    )


def _gap_candidates(
    text: str,
    markers: list[tuple[str, int, int]],
    seen: set[str],
) -> list[_Candidate]:
    candidates = []
    for (letter, _, gap_start), (_, gap_end, _) in zip(markers, markers[1:]):
        gap = text[gap_start:gap_end].strip()
        if len(gap) <= MIN_GAP_LENGTH:
            continue

        for chunk in SENTENCE_SPLIT_PATTERN.split(gap):
            chunk = clean_fragment(chunk)
            if len(chunk) <= MIN_CHUNK_LENGTH or not _is_option_like(chunk):
                continue
            if _duplicate_key(chunk) in seen:
                continue
            seen.add(_duplicate_key(chunk))
            candidates.append(_Candidate(chunk, "gap", opener=letter))
            break
    return candidates


def _sentence_candidates(text: str, seen: set[str], needed: int) -> list[_Candidate]:
    candidates = []
    for match in ACTION_SENTENCE_PATTERN.finditer(text):
        if len(candidates) >= needed:
            break
        sentence = clean_fragment(match.group(0))
        if len(sentence) <= MIN_OPTION_LENGTH:
            continue
        if _duplicate_key(sentence) in seen:
            continue
        seen.add(_duplicate_key(sentence))
        candidates.append(_Candidate(sentence, "sentence_scan"))
    return candidates


def _trim_opener(
    options: dict[str, Option], candidate: _Candidate, labeled: set[str]
) -> None:
    """Cut the recovered text off the end of the option that swallowed it."""
    if candidate.opener:
        enclosing = [options[candidate.opener]]
    else:
        # Sentence-scan texts carry no opener: any labeled option may hold them
        enclosing = [options[letter] for letter in sorted(labeled)]

    for opener in enclosing:
        index = opener.text.find(candidate.text)
        if index <= MIN_OPTION_LENGTH:
            continue
        trimmed = opener.text[:index].strip()
        if len(trimmed) > MIN_OPTION_LENGTH:
            options[opener.id] = Option(id=opener.id, text=trimmed)
        return


def infer_missing_options(text: str, options: list[Option]) -> InferenceResult:
    """
    Recover options whose label was lost to OCR noise.

    Unlabeled text between two recognized "(X)" markers is split into
    sentence-like chunks and the first option-looking chunk of each gap is
    taken. If that is not enough, action-verb sentences from the whole text
    are used. Recovered texts are handed to the missing letters in the order
    both were found; that order is not guaranteed to match the real one.
    """
    found = {opt.id for opt in options}
    missing = [letter for letter in OPTION_IDS if letter not in found]
    if not missing:
        return InferenceResult(options=sorted(options, key=lambda o: o.id))

    seen = {_duplicate_key(opt.text) for opt in options}
    markers = locate_option_markers(text, options)

    candidates = _gap_candidates(text, markers, seen)
    if len(candidates) < len(missing):
        candidates += _sentence_candidates(
            text, seen, needed=len(missing) - len(candidates)
        )

    by_letter = {opt.id: opt for opt in options}
    inferred: dict[str, str] = {}
    for letter, candidate in zip(missing, candidates):
        by_letter[letter] = Option(id=letter, text=candidate.text)
        inferred[letter] = candidate.method
        _trim_opener(by_letter, candidate, found)

    return InferenceResult(
        options=sorted(by_letter.values(), key=lambda o: o.id),
        inferred=inferred,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# PARSER
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class ParseOutcome:
    """A parsed question and the diagnostics raised while building it."""
    question: Question
    diagnostics: list[Diagnostic] = field(default_factory=list)
    body_strategy: Optional[BodyStrategy] = None


class MCQTextParser:
    """
    Parses the OCR text of one image into a Question.

    Low-confidence results are returned with warnings attached rather than
    rejected. Unexpected exceptions propagate to the caller.
    """

    def __init__(self, validator: Optional[ValidationEngine] = None):
        self.validator = validator or ValidationEngine()

    def parse(self, raw_text: str, source_name: str) -> ParseOutcome:
        diagnostics: list[Diagnostic] = []
        text = normalize_text(raw_text)

        # ── Identifier ────────────────────────────────────────────────
        identifier = extract_question_id(text, source_name)
        if identifier.synthesized:
            diagnostics.append(Diagnostic(
                severity=DiagnosticSeverity.INFO,
                source_name=source_name,
                type=DiagnosticType.SYNTHESIZED_QUESTION_ID,
                message=(
                    f"No question identifier in text, "
                    f"using {identifier.question_id}"
                ),
            ))

        # ── Body ──────────────────────────────────────────────────────
        body = extract_question_body(text[identifier.body_offset:])
        logger.debug(
            f"{source_name}: body via "
            f"{body.strategy.value if body.strategy else 'none'}"
        )

        # ── Options ───────────────────────────────────────────────────
        options = extract_labeled_options(text)
        if len(options) < len(OPTION_IDS):
            diagnostics.append(Diagnostic(
                severity=DiagnosticSeverity.INFO,
                source_name=source_name,
                type=DiagnosticType.MISSING_LABELED_OPTIONS,
                message=(
                    f"Only found {len(options)} labeled options, "
                    f"looking for unlabeled text blocks"
                ),
                context={"found": [opt.id for opt in options]},
            ))
            result = infer_missing_options(text, options)
            options = result.options
            for letter, method in result.inferred.items():
                diagnostics.append(Diagnostic(
                    severity=DiagnosticSeverity.INFO,
                    source_name=source_name,
                    type=DiagnosticType.INFERRED_OPTION,
                    message=f"Recovered unlabeled option {letter} ({method})",
                    context={"option": letter, "method": method},
                ))

        question = Question(
            question_id=identifier.question_id,
            source_name=source_name,
            question_body=body.body,
            options=tuple(options),
            raw_text=raw_text,
        )

        diagnostics.extend(self.validator.validate(question))
        return ParseOutcome(
            question=question,
            diagnostics=diagnostics,
            body_strategy=body.strategy,
        )
