import random
from typing import Optional
from urllib.parse import urlencode

import requests

from pos.logging import get_logger

log = get_logger("barcodes")

BARCODE_SERVICE_URL = "https://barcode.tec-it.com/barcode.ashx"


def generate_barcode(rng: Optional[random.Random] = None) -> str:
    """Random 12-digit code for products that arrive without one."""
    rng = rng or random.Random()
    return str(rng.randint(100_000_000_000, 999_999_999_999))


def barcode_image_url(code: str, symbology: str = "Code128") -> str:
    return f"{BARCODE_SERVICE_URL}?{urlencode({'data': code, 'code': symbology})}"


def fetch_barcode_image(
    code: str, *, session: Optional[requests.Session] = None, timeout: float = 30
) -> bytes:
    """Download the rendered barcode PNG from the image service."""
    url = barcode_image_url(code)
    s = session or requests.Session()
    log.debug(f"GET {url}")
    r = s.get(url, timeout=timeout)
    r.raise_for_status()
    return r.content
