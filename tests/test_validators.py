import pytest
from conftest import make_record

from mcqgen.models import QuestionRecord
from mcqgen.validators import ValidationError, is_valid, validate_record


def test_complete_record_is_valid():
    assert is_valid(make_record())


def test_three_options_are_rejected():
    record = make_record()
    record.options.pop("D")

    with pytest.raises(ValidationError, match="A, B, C and D"):
        validate_record(record)


def test_unknown_option_label_is_rejected():
    record = make_record()
    record.options["E"] = record.options.pop("D")

    assert not is_valid(record)


def test_correct_answer_outside_labels_is_rejected():
    record = make_record()
    record.correct_answer = "E"

    with pytest.raises(ValidationError, match="Correct answer"):
        validate_record(record)


def test_missing_correct_answer_is_rejected():
    record = make_record()
    record.correct_answer = None

    assert not is_valid(record)


def test_blank_explanation_is_rejected():
    record = make_record()
    record.explanation = "   "

    with pytest.raises(ValidationError, match="Explanation"):
        validate_record(record)


def test_empty_question_is_rejected():
    record = make_record()
    record.question_lines = ["", "  "]

    assert not is_valid(record)


@pytest.mark.parametrize("stray", ["(a) Article 14", "Options:", "**Options:**"])
def test_option_text_inside_question_is_rejected(stray):
    record = make_record()
    record.question_lines.append(stray)

    with pytest.raises(ValidationError, match="option text"):
        validate_record(record)


def test_blank_or_duplicate_option_text_is_rejected():
    blank = make_record()
    blank.options["B"] = " "
    duplicate = make_record()
    duplicate.options["B"] = "article 14"

    assert not is_valid(blank)
    assert not is_valid(duplicate)


def test_records_round_trip_through_wire_aliases():
    payload = make_record().model_dump(by_alias=True)

    assert set(payload) == {"question", "options", "correctAnswer", "explanation"}
    assert is_valid(QuestionRecord.model_validate(payload))


@pytest.mark.parametrize("statement", ["(i) Writs are issued by the SC.", "(v) Fifth statement."])
def test_roman_numeral_statements_are_not_option_text(statement):
    record = make_record()
    record.question_lines.append(statement)

    validate_record(record)
