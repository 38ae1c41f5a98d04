"""
merchant_normalizer.py
-----------------------
Canonicalizes raw merchant strings so payments to the same payee group
together.

Grouping is exact: two transactions belong to the same merchant only if
their normalized names are identical. There is no fuzzy matching.

Word lists come from the merchant_normalization block of config.yaml.
"""

import re

from config.config_loader import get_normalization_config


class MerchantNormalizer:
    """
    Usage:
        normalizer = MerchantNormalizer()
        normalizer.normalize("NETFLIX.COM")   # -> "netflix com"
    """

    def __init__(self):
        config = get_normalization_config()
        removable = list(config["corporate_suffixes"]) + list(config["filler_words"])
        self._removable_words = re.compile(
            r"\b(" + "|".join(re.escape(w) for w in removable) + r")\b"
        )
        self._digit_runs = re.compile(r"\d{%d,}" % config["min_digit_run"])

    def normalize(self, merchant: str | None) -> str:
        text = (merchant or "").lower()
        text = re.sub(r"[^a-z0-9\s]", " ", text)
        text = re.sub(r"\s+", " ", text)
        text = self._removable_words.sub("", text)
        text = self._digit_runs.sub("", text)
        return re.sub(r"\s+", " ", text).strip()


_DEFAULT_NORMALIZER: MerchantNormalizer | None = None


def normalize_merchant_name(merchant: str | None) -> str:
    """Module-level shortcut using a lazily built normalizer."""
    global _DEFAULT_NORMALIZER
    if _DEFAULT_NORMALIZER is None:
        _DEFAULT_NORMALIZER = MerchantNormalizer()
    return _DEFAULT_NORMALIZER.normalize(merchant)
