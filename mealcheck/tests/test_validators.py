"""
Validator and helper tests
"""
from datetime import datetime

import pytest

from mealcheck.utils.helpers import file_timestamp, get_current_month, get_today, size_in_mb
from mealcheck.utils.validators import (
    is_valid_date,
    is_valid_month,
    is_valid_nfc_id,
    is_valid_password,
    is_valid_student_id,
    parse_student_id,
)


def test_parse_student_id():
    assert parse_student_id("20701") == {
        "grade": 2,
        "class": 7,
        "number": 1,
        "formatted": "Grade 2, Class 7, No. 1",
    }
    assert parse_student_id("31224")["class"] == 12


@pytest.mark.parametrize("student_id", ["00000", "00101", "10001", "10100", "20700", "30100", "99999"])
def test_parse_splits_every_five_digit_id(student_id):
    info = parse_student_id(student_id)
    assert info["grade"] == int(student_id[0])
    assert info["class"] == int(student_id[1:3])
    assert info["number"] == int(student_id[3:5])
    assert is_valid_student_id(student_id)


def test_parse_covers_the_whole_id_space():
    for value in range(0, 100000, 997):
        student_id = f"{value:05d}"
        info = parse_student_id(student_id)
        assert (info["grade"], info["class"], info["number"]) == (
            value // 10000, value // 100 % 100, value % 100,
        )


@pytest.mark.parametrize("value", ["2070", "207011", "2070a", "", " 20701", "20701 ", "２０７０１"])
def test_invalid_student_ids(value):
    assert not is_valid_student_id(value)
    with pytest.raises(ValueError):
        parse_student_id(value)


def test_student_id_must_be_text():
    assert not is_valid_student_id(20701)
    assert not is_valid_student_id(None)


def test_nfc_and_pin_formats():
    assert is_valid_nfc_id("0123456789")
    assert not is_valid_nfc_id("123456789")
    assert not is_valid_nfc_id("12345678901")
    assert not is_valid_nfc_id(None)

    assert is_valid_password("0042")
    assert not is_valid_password("042")
    assert not is_valid_password("abcd")


def test_month_and_date_formats():
    assert is_valid_month("2025-11")
    assert not is_valid_month("2025-13")
    assert not is_valid_month("2025-1")

    assert is_valid_date("2024-02-29")
    assert not is_valid_date("2025-02-29")
    assert not is_valid_date("2025-1-05")


def test_time_helpers():
    now = datetime(2025, 3, 9, 7, 5, 4)
    assert get_current_month(now) == "2025-03"
    assert get_today(now) == "2025-03-09"
    assert file_timestamp(now) == "2025-03-09_07-05-04"
    assert size_in_mb(3 * 1024 * 1024 // 2) == "1.50"


def test_get_logger_adds_handlers_once():
    import logging

    from mealcheck.utils.logger import get_logger

    logger = get_logger("mealcheck.tests.logger_check")
    handler_count = len(logger.handlers)
    assert handler_count >= 1

    assert get_logger("mealcheck.tests.logger_check") is logger
    assert len(logger.handlers) == handler_count
    assert logger.level in (logging.DEBUG, logging.INFO)
