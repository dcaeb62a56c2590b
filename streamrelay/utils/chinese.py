from functools import lru_cache

from opencc import OpenCC


@lru_cache(maxsize=1)
def _t2s() -> OpenCC:
    return OpenCC("t2s")


def to_simplified(text: str) -> str:
    """
    Convert Traditional Chinese characters to Simplified; other text is
    returned unchanged.
    """
    if not text:
        return text
    return _t2s().convert(text)
