"""Data normalization utilities for price parsing, title cleanup and classification."""

import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import List, Optional, Tuple

import structlog
from bs4 import BeautifulSoup

from solewatch.schemas.deal import RejectionReason

logger = structlog.get_logger()


PRICE_FLOOR = 10.0
PRICE_CEILING = 1000.0
MIN_DISCOUNT = 5
MAX_DISCOUNT = 90

# Tolerance in dollars when matching "Save $X" / "P% off" against prices
PRICE_MATCH_TOLERANCE = 1.0

_DOLLAR_RE = re.compile(r"\$\s*[\d,]+(?:\.\d{1,2})?")
_SAVE_RE = re.compile(r"save\s*\$\s*([\d,]+(?:\.\d{1,2})?)", re.IGNORECASE)
_PERCENT_OFF_RE = re.compile(r"(\d+)\s*%\s*off", re.IGNORECASE)
_CENTS_SELECTOR = "sup, .cents, .price-cents, small"


# Union of the brand names seen across supported retailers
KNOWN_BRANDS = [
    "361 Degrees", "adidas", "Allbirds", "Altra", "APL", "ASICS", "Babolat",
    "Birkenstock", "Brooks", "Craft", "Diadora", "HEAD", "HOKA",
    "Hylo Athletics", "Inov-8", "INOV8", "Kane Footwear", "Karhu",
    "K-Swiss", "La Sportiva", "LANE EIGHT", "Lems", "Merrell", "Mizuno",
    "Mount to Coast", "New Balance", "Newton", "Nike", "Nnormal", "norda",
    "On Running", "On", "OOFOS", "Pearl Izumi", "Puma", "Reebok", "Salomon",
    "Saucony", "Saysh", "Skechers", "Skora", "Teva", "The North Face",
    "Topo Athletic", "Topo", "Tyr", "Under Armour", "VEJA",
    "Vibram FiveFingers", "Vibram", "Vivobarefoot", "VJ Shoes", "VJ",
    "Wilson", "X-Bionic", "Xero Shoes", "Xero", "Yonex",
]

# Brands that are also ordinary English words ("on sale", "head start")
CASE_SENSITIVE_BRANDS = frozenset(["On", "On Running", "HEAD"])


def brand_pattern(brand: str) -> "re.Pattern[str]":
    flags = 0 if brand in CASE_SENSITIVE_BRANDS else re.IGNORECASE
    return re.compile(r"(^|[^A-Za-z0-9])" + re.escape(brand) + r"([^A-Za-z0-9]|$)", flags)


BRAND_PATTERNS: List[Tuple[str, "re.Pattern[str]"]] = [
    (brand, brand_pattern(brand))
    for brand in sorted(KNOWN_BRANDS, key=len, reverse=True)
]


# Apparel, accessories and kids listings never enter the catalog
EXCLUDED_TERMS = [
    "sock", "socks",
    "apparel", "shirt", "shorts", "tights", "pants",
    "hat", "cap", "beanie",
    "insole", "insoles",
    "laces", "lace",
    "accessories", "accessory",
    "hydration", "bottle", "flask",
    "watch", "watches",
    "gear", "equipment",
    "bag", "bags", "pack", "backpack",
    "vest", "vests",
    "jacket", "jackets",
    "bra", "bras",
    "underwear", "brief",
    "glove", "gloves", "mitt",
    "compression sleeve",
    "arm warmer", "leg warmer",
    "headband", "wristband",
    "sunglasses", "eyewear",
    "sleeve", "sleeves",
    "throw",
    "out of stock",
    "kids", "kid",
    "youth",
    "junior", "juniors",
]

_EXCLUDED_RE = re.compile(
    r"\b(?:" + "|".join(re.escape(term) for term in EXCLUDED_TERMS) + r")\b",
    re.IGNORECASE,
)

SHOE_TYPE_KEYWORDS = [
    ("trail", re.compile(
        r"\b(trail|speedgoat|peregrine|hierro|wildcat|terraventure|speedcross|summit)\b",
        re.IGNORECASE,
    )),
    ("track", re.compile(
        r"\b(track|spikes?|dragonfly|ja fly|zoom\s+victory)\b",
        re.IGNORECASE,
    )),
    ("road", re.compile(
        r"\b(road|kayano|clifton|ghost|pegasus|nimbus|cumulus|gel|glycerin|"
        r"kinvara|ride|triumph|novablast)\b",
        re.IGNORECASE,
    )),
]

_MENS_TEXT_RE = re.compile(r"\b(men'?s?|male)\b", re.IGNORECASE)
_WOMENS_TEXT_RE = re.compile(r"\b(women'?s?|female|ladies)\b", re.IGNORECASE)
_UNISEX_RE = re.compile(r"\bunisex\b", re.IGNORECASE)
_GENDER_WORDS_RE = re.compile(r"\b(?:men'?s?|women'?s?|unisex)(?=\W|$)", re.IGNORECASE)

_PROMO_PREFIXES = [
    re.compile(r"^(extra\s*\d+\s*%\s*off)\s+", re.IGNORECASE),
    re.compile(r"^(sale|clearance|closeout)\s+", re.IGNORECASE),
]


def normalize_whitespace(text) -> str:
    return re.sub(r"\s+", " ", str(text or "")).strip()


def clean_title(raw) -> str:
    """Collapse whitespace and drop leading promotional prefixes.

    "Extra 20% off Sale Brooks Ghost 15" -> "Brooks Ghost 15"
    """
    title = normalize_whitespace(raw).replace("’", "'")
    changed = True
    while changed:
        changed = False
        for prefix in _PROMO_PREFIXES:
            stripped = prefix.sub("", title, count=1)
            if stripped != title:
                title = stripped.strip()
                changed = True
    return normalize_whitespace(title)


def split_brand_model(title: str) -> Tuple[str, str]:
    """Split a cleaned listing title into (brand, model).

    The first lexicon brand found (longest names tried first) is removed from
    the title; gender words and stray punctuation are removed from what is
    left. Returns ("Unknown", model) when no known brand appears.
    """
    if not title:
        return "Unknown", ""

    brand = "Unknown"
    model = title
    for name, pattern in BRAND_PATTERNS:
        if pattern.search(title):
            brand = name
            model = pattern.sub(" ", title, count=1)
            break

    return brand, clean_model(model)


def clean_model(model: str) -> str:
    model = _GENDER_WORDS_RE.sub(" ", model)
    model = normalize_whitespace(model)
    model = re.sub(r"^[\s\-:,|/]+", "", model)
    model = re.sub(r"[\s\-:,|/]+$", "", model)
    return model


def absolutize_url(url, base_url: Optional[str] = None) -> Optional[str]:
    """Turn a scraped href/src into an absolute http(s) URL.

    Returns None for empty values, data URIs, non-http schemes, and relative
    URLs when no base URL is known.
    """
    if not isinstance(url, str):
        return None
    url = url.strip()
    if not url or url == "#" or url.lower().startswith("data:"):
        return None
    if re.match(r"^https?://", url, re.IGNORECASE):
        return url
    if url.startswith("//"):
        return "https:" + url
    if re.match(r"^[a-z][a-z0-9+.\-]*:", url, re.IGNORECASE):
        return None
    if not base_url:
        return None
    base = base_url.rstrip("/")
    if url.startswith("/"):
        return base + url
    return base + "/" + url.lstrip("/")


def is_placeholder_image(url: Optional[str]) -> bool:
    if not url:
        return True
    lowered = url.lower()
    return "placeholder" in lowered or "no-image" in lowered or lowered.startswith("data:")


@dataclass(frozen=True)
class PriceExtraction:
    """Outcome of reading a sale/original pair out of free text."""

    sale_price: Optional[float] = None
    original_price: Optional[float] = None
    failure: Optional[RejectionReason] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


class PriceNormalizer:
    """Price parsing utilities.

    Handles structured amounts ("$1,234.50", 95, "95.00") and free-text price
    blocks where sale price, original price and savings are mixed together.
    """

    @staticmethod
    def to_price(value) -> Optional[float]:
        """Parse a structured price value.

        Returns None for missing, non-numeric, non-finite or non-positive
        values.
        """
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            number = float(value)
        else:
            text = str(value).replace(",", "")
            numbers = re.findall(r"\d+(?:\.\d+)?|\.\d+", text)
            # Signed values and ranges ("$90 - $120") are not a single price
            if "-" in text or len(numbers) != 1:
                return None
            try:
                number = float(Decimal(numbers[0]))
            except InvalidOperation:
                return None
        if number != number or number in (float("inf"), float("-inf")) or number <= 0:
            return None
        return round(number, 2)

    @staticmethod
    def compute_discount_percent(original: float, sale: float) -> int:
        """Whole-number discount, rounding halves up (40.625 -> 41)."""
        orig = Decimal(str(original))
        pct = (orig - Decimal(str(sale))) / orig * 100
        return int(pct.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    @staticmethod
    def discount_in_window(
        original: float,
        sale: float,
        min_discount: float = MIN_DISCOUNT,
        max_discount: float = MAX_DISCOUNT,
    ) -> bool:
        """Whether the unrounded markdown lies inside [min_discount, max_discount]."""
        pct = (original - sale) * 100 / original
        return min_discount <= pct <= max_discount

    @staticmethod
    def extract_dollar_amounts(text: Optional[str]) -> List[float]:
        if not text:
            return []
        amounts = []
        for match in _DOLLAR_RE.findall(text):
            try:
                amounts.append(float(re.sub(r"[$,\s]", "", match)))
            except ValueError:
                continue
        return amounts

    @staticmethod
    def extract_cents_amounts(html: Optional[str]) -> List[float]:
        """Recover prices rendered as "$99<sup>95</sup>".

        Each cents element ("sup", ".cents", ".price-cents", "small") holding
        one or two digits is combined with the "$N" text directly inside its
        parent element.
        """
        if not html:
            return []
        soup = BeautifulSoup(html, "html.parser")
        amounts = []
        for element in soup.select(_CENTS_SELECTOR):
            cents_text = element.get_text().strip()
            if not re.fullmatch(r"\d{1,2}", cents_text):
                continue
            parent = element.parent
            if parent is None:
                continue
            own_text = "".join(parent.find_all(string=True, recursive=False))
            dollars = re.search(r"\$\s*(\d+)", own_text)
            if not dollars:
                continue
            amounts.append(int(dollars.group(1)) + int(cents_text) / 100)
        return amounts

    @staticmethod
    def find_save_amount(text: Optional[str]) -> Optional[float]:
        if not text:
            return None
        match = _SAVE_RE.search(text)
        if not match:
            return None
        try:
            return float(match.group(1).replace(",", ""))
        except ValueError:
            return None

    @staticmethod
    def find_percent_off(text: Optional[str]) -> Optional[int]:
        if not text:
            return None
        match = _PERCENT_OFF_RE.search(text)
        if not match:
            return None
        percent = int(match.group(1))
        return percent if 0 < percent < 100 else None

    @classmethod
    def extract_from_text(
        cls,
        text: Optional[str] = None,
        html: Optional[str] = None,
        min_discount: float = MIN_DISCOUNT,
        max_discount: float = MAX_DISCOUNT,
    ) -> PriceExtraction:
        """Decide sale and original price from a free-text price block.

        Args:
            text: Visible text of the listing tile or price block
            html: Optional HTML fragment; used for cents sub-elements and as
                the text source when ``text`` is not given
            min_discount: Lowest accepted markdown percent
            max_discount: Highest accepted markdown percent

        Returns:
            PriceExtraction with both prices, or a failure reason
        """
        if text is None and html:
            # Tag text is joined without separators, so "$99<sup>95</sup>"
            # reads as "$9995" and falls outside the sane range below.
            text = BeautifulSoup(html, "html.parser").get_text()

        amounts = cls.extract_dollar_amounts(text) + cls.extract_cents_amounts(html)
        sane = [a for a in amounts if PRICE_FLOOR <= a < PRICE_CEILING]
        distinct = sorted({round(a, 2) for a in sane}, reverse=True)

        if len(distinct) < 2:
            return PriceExtraction(failure=RejectionReason.MISSING_PRICE)
        if len(distinct) > 3:
            return PriceExtraction(failure=RejectionReason.AMBIGUOUS_PRICE)

        original = distinct[0]
        window = (min_discount, max_discount)
        if len(distinct) == 2:
            return cls._checked(distinct[1], original, window)

        remaining = distinct[1:]
        higher, lower = remaining

        save_amount = cls.find_save_amount(text)
        if save_amount is not None:
            higher_is_save = abs(higher - save_amount) <= PRICE_MATCH_TOLERANCE
            lower_is_save = abs(lower - save_amount) <= PRICE_MATCH_TOLERANCE
            if higher_is_save != lower_is_save:
                result = cls._checked(lower if higher_is_save else higher, original, window)
                if result.ok:
                    return result

        percent_off = cls.find_percent_off(text)
        if percent_off is not None:
            expected = original * (1 - percent_off / 100)
            candidates = [
                p for p in remaining if abs(p - expected) <= PRICE_MATCH_TOLERANCE
            ]
            if candidates:
                best = min(candidates, key=lambda p: abs(p - expected))
                result = cls._checked(best, original, window)
                if result.ok:
                    return result

        # Neither hint resolved it: assume the larger leftover is the sale price
        return cls._checked(higher, original, window)

    @staticmethod
    def _checked(sale: float, original: float, window: Tuple[float, float]) -> PriceExtraction:
        if not sale < original:
            return PriceExtraction(failure=RejectionReason.DISCOUNT_OUT_OF_RANGE)
        if not PriceNormalizer.discount_in_window(original, sale, *window):
            return PriceExtraction(failure=RejectionReason.DISCOUNT_OUT_OF_RANGE)
        return PriceExtraction(sale_price=sale, original_price=original)


class ShoeClassifier:
    """Keyword-based gender, shoe type and category classification."""

    @staticmethod
    def infer_gender(url: Optional[str], text: Optional[str]) -> str:
        """Infer gender from the listing URL first, then the listing text.

        Returns:
            "mens", "womens", "unisex" (also when both genders are named) or
            "unknown"
        """
        tokens = set(re.split(r"[^a-z0-9]+", (url or "").lower()))
        url_mens = bool(tokens & {"men", "mens"})
        url_womens = bool(tokens & {"women", "womens"})
        if "unisex" in tokens or (url_mens and url_womens):
            return "unisex"
        if url_mens:
            return "mens"
        if url_womens:
            return "womens"

        text = (text or "").replace("’", "'")
        mens = bool(_MENS_TEXT_RE.search(text))
        womens = bool(_WOMENS_TEXT_RE.search(text))
        if _UNISEX_RE.search(text) or (mens and womens):
            return "unisex"
        if mens:
            return "mens"
        if womens:
            return "womens"
        return "unknown"

    @staticmethod
    def infer_shoe_type(text: Optional[str]) -> str:
        """Trail keywords win over track, track over road."""
        text = text or ""
        for shoe_type, pattern in SHOE_TYPE_KEYWORDS:
            if pattern.search(text):
                return shoe_type
        return "unknown"

    @staticmethod
    def is_excluded(text: Optional[str]) -> bool:
        """True for apparel, accessories and kids listings."""
        return bool(_EXCLUDED_RE.search(text or ""))
