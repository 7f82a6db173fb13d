import os

import requests

API_BASE_URL = os.getenv("TOOLSHOP_API_URL", "https://api.practicesoftwaretesting.com")
REQUEST_TIMEOUT_S = 15


def _format_price(value):
    # full precision, whole numbers without a trailing ".0"
    text = repr(float(value))
    return text[:-2] if text.endswith(".0") else text


class ToolshopApi:
    """Thin wrapper over the Toolshop REST API. Every call raises requests.HTTPError on non-2xx."""

    def __init__(self, base_url=API_BASE_URL, session=None):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()

    def _get(self, path, params=None):
        response = self.session.get(f"{self.base_url}{path}", params=params or {}, timeout=REQUEST_TIMEOUT_S)
        response.raise_for_status()
        return response.json()

    def login(self, email, password):
        response = self.session.post(
            f"{self.base_url}/users/login",
            json={"email": email, "password": password},
            timeout=REQUEST_TIMEOUT_S,
        )
        response.raise_for_status()
        token = response.json()["access_token"]
        self.session.headers["Authorization"] = f"Bearer {token}"
        return token

    def get_products(self, **params):
        return self._get("/products", params)

    def search_products(self, query):
        return self._get("/products/search", {"query": query})

    def get_product(self, product_id):
        return self._get(f"/products/{product_id}")

    def get_brands(self):
        return self._get("/brands")

    def get_categories(self):
        return self._get("/categories")

    def products_in_price_range(self, price_min, price_max):
        # paginated payloads wrap the list in "data"
        payload = self.get_products(between=f"price,{_format_price(price_min)},{_format_price(price_max)}")
        if isinstance(payload, dict):
            return payload.get("data", [])
        return payload
