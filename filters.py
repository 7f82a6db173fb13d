from slider import DragRangeSlider, read_value

WAIT_TIMEOUT_MS = 5_000
SORT_OPTIONS = ("name,asc", "name,desc", "price,asc", "price,desc")

SEL_SEARCH_INPUT = '[data-test="search-query"]'
SEL_SEARCH_SUBMIT = '[data-test="search-submit"]'
SEL_SEARCH_RESET = '[data-test="search-reset"]'
SEL_SORT = '[data-test="sort"]'
SEL_PRICE_MIN = ".ngx-slider-pointer-min"
SEL_PRICE_MAX = ".ngx-slider-pointer-max"
SEL_SLIDER_TRACK = ".ngx-slider-full-bar"
SEL_BRAND_TEMPLATE = '[data-test="brand-{brand_id}"]'


def _visible(locator):
    locator.wait_for(state="visible", timeout=WAIT_TIMEOUT_MS)
    return locator


class Filters:
    """Catalog filter sidebar: search, sort, price slider, categories and brands."""

    def __init__(self, page):
        self.page = page

    def _brand_checkbox(self, brand_id):
        return self.page.locator(SEL_BRAND_TEMPLATE.format(brand_id=brand_id))

    def _category_checkbox(self, name):
        return (
            self.page.locator("label")
            .filter(has_text=name.strip())
            .locator('input[type="checkbox"]')
        )

    def price_slider(self):
        return DragRangeSlider(
            self.page.mouse,
            self.page.locator(SEL_PRICE_MIN),
            self.page.locator(SEL_PRICE_MAX),
            self.page.locator(SEL_SLIDER_TRACK),
        )

    # --- search ---

    def search_product(self, query):
        _visible(self.page.locator(SEL_SEARCH_INPUT)).fill(query)
        _visible(self.page.locator(SEL_SEARCH_SUBMIT)).click()

    def reset_search(self):
        _visible(self.page.locator(SEL_SEARCH_RESET)).click()

    def get_search_query(self):
        return _visible(self.page.locator(SEL_SEARCH_INPUT)).input_value()

    # --- sort ---

    def select_sort_option(self, option):
        if option not in SORT_OPTIONS:
            raise ValueError(f"Unknown sort option '{option}', expected one of {SORT_OPTIONS}")
        _visible(self.page.locator(SEL_SORT)).select_option(option)
        self.page.wait_for_load_state("networkidle")

    def get_selected_sort_option(self):
        return _visible(self.page.locator(SEL_SORT)).input_value()

    # --- price ---

    def set_price_range(self, price_min, price_max):
        for selector in (SEL_SLIDER_TRACK, SEL_PRICE_MIN, SEL_PRICE_MAX):
            _visible(self.page.locator(selector))

        slider = self.price_slider()
        slider.set_range(price_min, price_max)
        print(f"[INFO] Price range after move: {slider.get_range()}")

    def get_price_range(self):
        _visible(self.page.locator(SEL_PRICE_MIN))
        _visible(self.page.locator(SEL_PRICE_MAX))
        return self.get_min_price(), self.get_max_price()

    def get_min_price(self):
        return read_value(self.page.locator(SEL_PRICE_MIN))

    def get_max_price(self):
        return read_value(self.page.locator(SEL_PRICE_MAX))

    # --- categories / brands ---

    def filter_by_category(self, names):
        for name in names:
            checkbox = self._category_checkbox(name)
            if not checkbox.is_checked():
                checkbox.check()

    def is_category_checked(self, name):
        return self._category_checkbox(name).is_checked()

    def filter_by_brand(self, brand_id):
        checkbox = _visible(self._brand_checkbox(brand_id))
        if not checkbox.is_checked():
            checkbox.check()
            self.page.wait_for_load_state("networkidle")
