"""
Tests for leave and WFH date-window rules
"""
from datetime import date

from leavetrack.schemas.validation import error_codes
from leavetrack.services.validation_service import validate_leave_request_dates
from leavetrack.services.wfh_validation_service import validate_location, validate_wfh_dates

TODAY = date(2025, 6, 2)  # Monday


def test_valid_leave_window():
    assert validate_leave_request_dates(date(2025, 6, 10), date(2025, 6, 12), TODAY) == []


def test_past_start_also_lacks_notice():
    codes = error_codes(validate_leave_request_dates(date(2025, 6, 1), date(2025, 6, 3), TODAY))
    assert codes == ["PAST_DATE", "INSUFFICIENT_NOTICE"]


def test_errors_accumulate():
    codes = error_codes(validate_leave_request_dates(date(2025, 5, 1), date(2025, 4, 1), TODAY))
    assert "PAST_DATE" in codes
    assert "INVALID_DATE_RANGE" in codes
    assert "INSUFFICIENT_NOTICE" in codes


def test_notice_boundary():
    # Two days of notice are required: the 4th is allowed, the 3rd is not
    assert validate_leave_request_dates(date(2025, 6, 4), date(2025, 6, 4), TODAY) == []
    codes = error_codes(validate_leave_request_dates(date(2025, 6, 3), date(2025, 6, 3), TODAY))
    assert codes == ["INSUFFICIENT_NOTICE"]


def test_max_consecutive_days():
    # 30 inclusive days is the limit
    assert validate_leave_request_dates(date(2025, 7, 1), date(2025, 7, 30), TODAY) == []
    codes = error_codes(validate_leave_request_dates(date(2025, 7, 1), date(2025, 7, 31), TODAY))
    assert codes == ["EXCEEDS_MAX_DAYS"]


def test_wfh_current_week_rejected():
    # Sunday belongs to the week that started on Monday the 2nd
    codes = error_codes(validate_wfh_dates(date(2025, 6, 8), date(2025, 6, 8), TODAY))
    assert codes == ["CURRENT_WEEK_NOT_ALLOWED"]


def test_wfh_next_monday_allowed_even_on_sunday():
    sunday = date(2025, 6, 8)
    assert validate_wfh_dates(date(2025, 6, 9), date(2025, 6, 9), sunday) == []


def test_wfh_invalid_range():
    codes = error_codes(validate_wfh_dates(date(2025, 6, 12), date(2025, 6, 10), TODAY))
    assert codes == ["INVALID_DATE_RANGE"]


def test_location_rules():
    assert error_codes(validate_location(None)) == ["LOCATION_REQUIRED"]
    assert error_codes(validate_location("   ")) == ["LOCATION_REQUIRED"]
    assert error_codes(validate_location("ab")) == ["LOCATION_TOO_SHORT"]
    assert error_codes(validate_location("x" * 101)) == ["LOCATION_TOO_LONG"]
    assert validate_location("  Home office  ") == []
