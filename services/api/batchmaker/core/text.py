import re

from bs4 import BeautifulSoup

# Page chrome that never holds the recipe itself
NOISE_TAGS = ("script", "style", "noscript", "nav", "header", "footer", "svg", "iframe")


def collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def _clamp(text: str, length: int) -> str:
    if len(text) <= length:
        return text
    return text[:length].rstrip()


def clean_html(html: str, max_chars: int = 12_000) -> str:
    """
    Reduce a web page to its visible text for the model.
    Removes:
    - script/style/noscript blocks
    - nav, header and footer sections
    Then collapses whitespace and truncates to ``max_chars``.
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, "lxml")
    for tag in soup(NOISE_TAGS):
        tag.decompose()

    text = collapse_whitespace(soup.get_text(" "))
    return _clamp(text, max_chars)
