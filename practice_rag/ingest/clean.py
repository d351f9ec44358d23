import re

BULLETS = ("•", "◦", "‣", "▪", "▸", "►", "●", "○", "■", "□", "\uf0b7")


def normalize_text(s: str) -> str:
    """Tidy extracted text: line endings, bullets, soft hyphens and runs of whitespace."""
    if not s:
        return ""
    s = s.replace("\r\n", "\n").replace("\r", "\n")
    for b in BULLETS:
        s = s.replace(b, "- ")
    s = s.replace("\u00a0", " ").replace("\u00ad", "")
    # "Hygiene-\nplan" -> "Hygieneplan"
    s = re.sub(r"(\w)-\n(\w)", r"\1\2", s)
    s = re.sub(r"[ \t]{2,}", " ", s)
    s = re.sub(r"\n{3,}", "\n\n", s)
    return s.strip()


def word_count(s: str) -> int:
    return len(s.split())


def estimate_pages(words: int, words_per_page: int = 500) -> int:
    return max(1, -(-words // words_per_page))
