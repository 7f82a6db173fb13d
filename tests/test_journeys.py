from unittest.mock import MagicMock

import pytest

from filters import SEL_PRICE_MAX, SEL_PRICE_MIN, SEL_SLIDER_TRACK
from journeys import (
    JOURNEYS,
    StepFailure,
    catalog_price_filter,
    clean_error_message,
    login_add_to_cart,
    make_step_runner,
)
from synthetic_monitor import StepObserver


def make_page(locators, mouse=None):
    page = MagicMock()
    page.mouse = mouse or MagicMock()
    page.locator.side_effect = lambda selector: locators.setdefault(selector, MagicMock())
    return page


def ticking_clock(step=0.25):
    now = [0.0]

    def clock():
        now[0] += step
        return now[0]
    return clock


def test_registry_lists_both_journeys():
    assert set(JOURNEYS) == {"catalog_price_filter", "login_add_to_cart"}


def test_clean_error_message_keeps_first_line_before_call_log():
    exc = Exception("Timeout 5000ms exceeded.\n====================================\ncall log...")
    assert clean_error_message(exc) == "Timeout 5000ms exceeded."


def test_clean_error_message_without_message():
    assert clean_error_message(ValueError()) == "ValueError with no details"
    assert clean_error_message("") == ""
    assert clean_error_message(None) == ""


def test_step_runner_records_success_and_failure():
    page = MagicMock()
    steps = []
    run_step = make_step_runner(page, StepObserver(clock=ticking_clock()), steps)

    def explode():
        raise RuntimeError("boom\nmore")

    assert run_step("Good", lambda: {"slider_error": 0.2}) is True
    assert run_step("Bad", explode) is False

    assert steps[0]["step"] == "Good"
    assert steps[0]["status"] == "SUCCESS"
    assert steps[0]["slider_error"] == 0.2
    assert steps[0]["duration_ms"] > 0
    assert steps[1]["status"] == "FAILURE"
    assert steps[1]["error"] == "boom"
    assert page.wait_for_timeout.call_count == 2


@pytest.fixture
def slider_page(mouse, make_handle, track):
    low = make_handle(50, offset=50, name="min")
    high = make_handle(150, offset=50, name="max")
    return make_page({SEL_PRICE_MIN: low, SEL_PRICE_MAX: high, SEL_SLIDER_TRACK: track}, mouse=mouse)


def test_catalog_price_filter_passes_when_slider_and_api_agree(slider_page):
    api = MagicMock()
    api.products_in_price_range.return_value = [
        {"name": "Pliers", "price": 12.01},
        {"name": "Hammer", "price": 49.5},
    ]
    row = {"search_term": "", "sort": "price,asc", "price_min": "10", "price_max": "50"}

    steps = catalog_price_filter(slider_page, StepObserver(clock=ticking_clock()), row, 0, api=api)

    assert [s["step"] for s in steps] == ["Launch", "Search And Sort", "Price Filter", "Verify API Range"]
    assert all(s["status"] == "SUCCESS" for s in steps), steps
    assert steps[2]["slider_error"] <= 0.5
    assert steps[3]["api_products"] == 2
    api.products_in_price_range.assert_called_once_with(10.0, 50.0)


def test_catalog_price_filter_flags_products_outside_range(slider_page):
    api = MagicMock()
    api.products_in_price_range.return_value = [{"name": "Drill", "price": 80}]
    row = {"price_min": "10", "price_max": "50"}

    steps = catalog_price_filter(slider_page, StepObserver(clock=ticking_clock()), row, 0, api=api)

    by_name = {s["step"]: s for s in steps}
    assert by_name["Price Filter"]["status"] == "SUCCESS"
    assert by_name["Verify API Range"]["status"] == "FAILURE"
    assert "Drill" in by_name["Verify API Range"]["error"]


def test_catalog_price_filter_fails_step_when_slider_stuck(mouse, make_handle, track):
    low = make_handle(50, offset=50, frozen=True)
    high = make_handle(150, offset=50, frozen=True)
    page = make_page({SEL_PRICE_MIN: low, SEL_PRICE_MAX: high, SEL_SLIDER_TRACK: track}, mouse=mouse)
    api = MagicMock()
    api.products_in_price_range.return_value = []

    steps = catalog_price_filter(page, StepObserver(clock=ticking_clock()), {"price_min": "10", "price_max": "50"}, 0, api=api)

    price_step = next(s for s in steps if s["step"] == "Price Filter")
    assert price_step["status"] == "FAILURE"
    assert "wanted (10.0, 50.0)" in price_step["error"]
    # settled at (0, 100) against (10, 50)
    assert price_step["slider_error"] == 50


def test_login_add_to_cart_without_credentials_fails_sign_in_only():
    page = MagicMock()

    steps = login_add_to_cart(page, StepObserver(clock=ticking_clock()), {"email": " "}, 3)

    statuses = {s["step"]: s["status"] for s in steps}
    assert statuses["Sign In"] == "FAILURE"
    assert statuses["Launch Login"] == "SUCCESS"
    assert statuses["Open Cart"] == "SUCCESS"
    page.fill.assert_not_called()


def test_step_runner_keeps_details_of_step_failure():
    page = MagicMock()
    steps = []
    run_step = make_step_runner(page, StepObserver(clock=ticking_clock()), steps, think_time_ms=0)

    def miss():
        raise StepFailure("slider missed", slider_error=7.5)

    assert run_step("Price Filter", miss) is False

    assert steps[0]["status"] == "FAILURE"
    assert steps[0]["error"] == "slider missed"
    assert steps[0]["slider_error"] == 7.5
    page.wait_for_timeout.assert_not_called()
