"""Source utilities for rate limiting, retries and data normalization."""

from .normalizer import (
    KNOWN_BRANDS,
    PriceExtraction,
    PriceNormalizer,
    ShoeClassifier,
    absolutize_url,
    clean_title,
    is_placeholder_image,
    split_brand_model,
)
from .rate_limiter import DomainRateLimiter, TokenBucket
from .retry import delivery_retry, http_retry


__all__ = [
    # Rate limiting
    "DomainRateLimiter",
    "TokenBucket",
    # Normalization
    "KNOWN_BRANDS",
    "PriceExtraction",
    "PriceNormalizer",
    "ShoeClassifier",
    "absolutize_url",
    "clean_title",
    "is_placeholder_image",
    "split_brand_model",
    # Retry decorators
    "http_retry",
    "delivery_retry",
]
