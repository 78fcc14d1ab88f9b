"""Citation formatting for APA, MLA and Chicago styles."""

from typing import Optional, Sequence

SUPPORTED_STYLES = ("APA", "MLA", "CHICAGO")


def format_citation(
    title: str,
    authors: Sequence[str] = (),
    year: Optional[int] = None,
    source: str = "",
    url: Optional[str] = None,
    style: str = "APA",
) -> str:
    """
    Format a single citation.

    Unknown styles fall back to a plain ``Authors (Year). Title. Source.`` form.
    """
    authors = [a.strip() for a in authors if a and a.strip()]
    year_str = str(year) if year else "n.d."
    style_key = (style or "APA").strip().upper()

    if style_key == "APA":
        author_str = f"{authors[0]} ({year_str})" if authors else f"({year_str})"
        citation = f"{author_str}. {title}. {source}"
        return f"{citation}. {url}" if url else citation

    names = ", ".join(authors) if authors else "Unknown Author"
    if style_key == "MLA":
        tail = f", {url}" if url else ""
        return f'{names}. "{title}." {source}, {year_str}{tail}.'
    if style_key == "CHICAGO":
        tail = f". {url}" if url else ""
        return f'{names}. "{title}." {source}, {year_str}{tail}.'

    return f"{', '.join(authors)} ({year_str}). {title}. {source}."
