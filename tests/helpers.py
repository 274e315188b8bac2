import json

import requests

from normalizer import normalize

API_URL = "https://catalog.test"


def make_response(status=200, payload=None, text=None):
    resp = requests.Response()
    resp.status_code = status
    resp.url = API_URL
    if payload is not None:
        resp._content = json.dumps(payload).encode("utf-8")
        resp.headers["Content-Type"] = "application/json"
    else:
        resp._content = (text or "").encode("utf-8")
    return resp


def raw_product(product_id, **overrides):
    data = {
        "id": product_id,
        "title": f"Product {product_id}",
        "price": 10 + product_id,
        "category": "beauty",
        "stock": 25,
        "thumbnail": f"https://cdn.test/{product_id}.png",
    }
    data.update(overrides)
    return data


def make_product(product_id, **overrides):
    return normalize(raw_product(product_id, **overrides))


def draft_payload(**overrides):
    data = {"title": "Desk Lamp", "price": "24.5", "category": "home", "image": None, "stock": 4}
    data.update(overrides)
    return data
