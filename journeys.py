import os
from pathlib import Path

from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from filters import Filters
from store_api import ToolshopApi

BASE_URL = os.getenv("TOOLSHOP_URL", "https://practicesoftwaretesting.com").rstrip("/")
THINK_TIME_MS = 1000
SCREENSHOT_DIR = Path("./screenshots")
CAPTURE_SCREENSHOTS = os.getenv("CAPTURE_SCREENSHOTS", "0") == "1"
# slider handles snap to whole units, so allow a little more than the drag tolerance
PRICE_TOLERANCE = 1.0

SEL_PRODUCT_CARD = 'a.card[data-test^="product-"]'
SEL_EMAIL = '[data-test="email"]'
SEL_PASSWORD = '[data-test="password"]'
SEL_LOGIN_SUBMIT = '[data-test="login-submit"]'
SEL_NAV_MENU = '[data-test="nav-menu"]'
SEL_ADD_TO_CART = '[data-test="add-to-cart"]'
SEL_NAV_CART = '[data-test="nav-cart"]'
SEL_CART_QUANTITY = '[data-test="cart-quantity"]'
SEL_PRODUCT_TITLE = '[data-test="product-title"]'


def _clean_field(row, key, default=""):
    value = str(row.get(key, "") or "").strip()
    return value or default


def _float_field(row, key, default):
    try:
        return float(_clean_field(row, key) or default)
    except ValueError:
        return float(default)


def _safe_wait_for_load_state(page, state="networkidle", timeout=15_000):
    try:
        page.wait_for_load_state(state, timeout=timeout)
    except PlaywrightTimeoutError:
        print(f"[WARN] Timeout while waiting for load state '{state}'")
        return False
    return True


class StepFailure(Exception):
    """Step failure that still carries measurements for the step result."""

    def __init__(self, message, **details):
        super().__init__(message)
        self.details = details


def clean_error_message(error):
    """First line of an error, without Playwright's call log."""
    if error is None:
        return ""
    message = str(error).strip()
    if not message:
        if isinstance(error, BaseException):
            return f"{type(error).__name__} with no details"
        return ""
    marker = "===================================="
    if marker in message:
        message = message.split(marker, 1)[0].strip()
    return message.splitlines()[0] if message else ""


def maybe_screenshot(page, filename):
    if CAPTURE_SCREENSHOTS:
        SCREENSHOT_DIR.mkdir(parents=True, exist_ok=True)
        path = SCREENSHOT_DIR / f"{filename}.png"
        page.screenshot(path=str(path), full_page=True)
        print(f"[INFO] Captured screenshot: {path}")


def make_step_runner(page, observer, steps, think_time_ms=THINK_TIME_MS):
    """
    Build run_step(name, fn) for one journey.

    A failing step is recorded and the journey moves on. Whatever fn returns
    (a dict) is merged into the step result. A StepFailure's details are
    merged the same way.
    """
    def run_step(name, fn):
        observer.start_step(name)
        status = "SUCCESS"
        error = None
        extra = None
        try:
            extra = fn()
        except Exception as exc:
            status = "FAILURE"
            error = clean_error_message(exc)
            if isinstance(exc, StepFailure):
                extra = exc.details
            print(f"[WARN] Step '{name}' failed: {error}")
        finally:
            step_result = observer.end_step(page)
            step_result["status"] = status
            if error:
                step_result["error"] = error
            if isinstance(extra, dict):
                step_result.update(extra)
            steps.append(step_result)
            if think_time_ms:
                page.wait_for_timeout(think_time_ms)
        return status == "SUCCESS"

    return run_step


# ================= CATALOG PRICE FILTER =================

def catalog_price_filter(page, observer, row, index, api=None):
    steps = []
    run_step = make_step_runner(page, observer, steps)
    filters = Filters(page)
    api = api or ToolshopApi()

    search_term = _clean_field(row, "search_term")
    sort_option = _clean_field(row, "sort", "price,asc")
    price_min = _float_field(row, "price_min", 1)
    price_max = _float_field(row, "price_max", 100)

    def step_launch():
        page.goto(BASE_URL)
        if not _safe_wait_for_load_state(page):
            raise Exception("Home page did not load.")
        page.locator(SEL_PRODUCT_CARD).first.wait_for(state="visible")
        maybe_screenshot(page, f"journey_{index}_launch")

    def step_search_and_sort():
        if search_term:
            filters.search_product(search_term)
        filters.select_sort_option(sort_option)
        maybe_screenshot(page, f"journey_{index}_sorted")

    def step_price_filter():
        filters.set_price_range(price_min, price_max)
        _safe_wait_for_load_state(page)
        low, high = filters.get_price_range()
        error = max(abs(low - price_min), abs(high - price_max))
        maybe_screenshot(page, f"journey_{index}_price_filter")
        if error > PRICE_TOLERANCE:
            raise StepFailure(
                f"Price slider settled at ({low}, {high}), wanted ({price_min}, {price_max})",
                slider_error=round(error, 2),
            )
        return {"slider_error": round(error, 2)}

    def step_verify_api():
        observer.pause_timer()
        try:
            products = api.products_in_price_range(price_min, price_max)
        finally:
            observer.resume_timer()
        outside = [
            p.get("name") for p in products
            if not price_min <= float(p.get("price", 0)) <= price_max
        ]
        if outside:
            raise Exception(f"API returned products outside the range: {outside[:3]}")
        return {"api_products": len(products)}

    run_step("Launch", step_launch)
    run_step("Search And Sort", step_search_and_sort)
    run_step("Price Filter", step_price_filter)
    run_step("Verify API Range", step_verify_api)

    return steps


# ================= LOGIN + CART =================

def login_add_to_cart(page, observer, row, index):
    steps = []
    run_step = make_step_runner(page, observer, steps)

    email = _clean_field(row, "email")
    password = _clean_field(row, "password")

    def step_launch_login():
        page.goto(f"{BASE_URL}/auth/login")
        page.locator(SEL_EMAIL).wait_for(state="visible")
        maybe_screenshot(page, f"journey_{index}_login_page")

    def step_sign_in():
        if not email or not password:
            raise ValueError("Journey row is missing email or password.")
        page.fill(SEL_EMAIL, email)
        page.fill(SEL_PASSWORD, password)
        page.click(SEL_LOGIN_SUBMIT)
        page.locator(SEL_NAV_MENU).wait_for(state="visible")
        maybe_screenshot(page, f"journey_{index}_signed_in")

    def step_open_product():
        page.goto(BASE_URL)
        page.locator(SEL_PRODUCT_CARD).first.click()
        page.wait_for_url("**/product/**")
        maybe_screenshot(page, f"journey_{index}_product")

    def step_add_to_cart():
        page.click(SEL_ADD_TO_CART)
        page.locator(SEL_CART_QUANTITY).wait_for(state="visible")
        maybe_screenshot(page, f"journey_{index}_added")

    def step_open_cart():
        page.click(SEL_NAV_CART)
        page.locator(SEL_PRODUCT_TITLE).first.wait_for(state="visible")
        maybe_screenshot(page, f"journey_{index}_cart")

    run_step("Launch Login", step_launch_login)
    run_step("Sign In", step_sign_in)
    run_step("Open Product", step_open_product)
    run_step("Add To Cart", step_add_to_cart)
    run_step("Open Cart", step_open_cart)

    return steps


JOURNEYS = {
    "catalog_price_filter": catalog_price_filter,
    "login_add_to_cart": login_add_to_cart,
}
