#!/usr/bin/env python3
"""Style Grabber: extract the add-to-cart button styling and fonts from a storefront URL."""

from __future__ import annotations

import argparse
import json
import logging
import os
import re
import ssl
import sys
from dataclasses import dataclass, field
from html.parser import HTMLParser
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Tuple
from urllib.error import HTTPError, URLError
from urllib.parse import parse_qs, urljoin
from urllib.request import Request, urlopen

logger = logging.getLogger(__name__)

UA = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36"
)
TIMEOUT_ENV = "STYLE_GRABBER_TIMEOUT"
CART_ADD_ACTION = "/cart/add"
BUTTON_SELECTOR = f'form[action*="{CART_ADD_ACTION}"] button'
GOOGLE_FONTS_HOST = "fonts.googleapis.com"
FONT_RULE_PROPS = ("font-family", "font-weight", "font-style", "letter-spacing")


class ExtractionError(Exception):
    """Base class for failures that abort a whole extraction."""

    message = "Extraction failed"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.message)


class PageFetchError(ExtractionError):
    message = "Error fetching the page"


class ButtonNotFound(ExtractionError):
    message = "Button not found"


@dataclass
class FontDescriptor:
    family: str
    font_weight: str = "normal"
    letter_spacings: str = "normal"
    url: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "family": self.family,
            "fontWeight": self.font_weight,
            "letterSpacings": self.letter_spacings,
            "url": self.url,
        }


@dataclass
class StylesheetResult:
    external_styles: Dict[str, str] = field(default_factory=dict)
    fonts: List[FontDescriptor] = field(default_factory=list)


@dataclass
class ExtractionResult:
    fonts: List[FontDescriptor]
    primary_button: Dict[str, str]

    def to_dict(self) -> Dict[str, object]:
        return {
            "fonts": [font.to_dict() for font in self.fonts],
            "primaryButton": dict(self.primary_button),
        }


class StorefrontIndex(HTMLParser):
    """Collects stylesheet links and the first button inside an add-to-cart form."""

    def __init__(self) -> None:
        super().__init__()
        self.stylesheets: List[str] = []
        self.button_attrs: Optional[Dict[str, str]] = None
        self._open_forms: List[bool] = []

    def handle_starttag(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> None:
        attr_map = {k.lower(): (v or "") for k, v in attrs}

        if tag == "link":
            href = attr_map.get("href", "")
            if attr_map.get("rel", "").strip().lower() == "stylesheet" and href:
                self.stylesheets.append(href)
        elif tag == "form":
            self._open_forms.append(CART_ADD_ACTION in attr_map.get("action", ""))
        elif tag == "button" and self.button_attrs is None and any(self._open_forms):
            self.button_attrs = attr_map

    def handle_endtag(self, tag: str) -> None:
        if tag == "form" and self._open_forms:
            self._open_forms.pop()


def default_timeout() -> Optional[float]:
    raw = os.environ.get(TIMEOUT_ENV, "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r", TIMEOUT_ENV, raw)
        return None


def fetch_text(url: str, timeout: Optional[float] = None) -> str:
    if timeout is None:
        timeout = default_timeout()
    req = Request(
        url,
        headers={
            "User-Agent": UA,
            "Accept": "text/html,text/css,application/xhtml+xml,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
            "Cache-Control": "no-cache",
            "Pragma": "no-cache",
        },
    )
    try:
        with urlopen(req, timeout=timeout) as res:
            charset = res.headers.get_content_charset() or "utf-8"
            body = res.read()
    except (ssl.SSLCertVerificationError, URLError) as exc:
        should_retry = isinstance(exc, ssl.SSLCertVerificationError)
        if isinstance(exc, URLError) and isinstance(exc.reason, ssl.SSLCertVerificationError):
            should_retry = True
        if not should_retry:
            raise
        logger.debug("Retrying %s without certificate verification", url)
        with urlopen(req, timeout=timeout, context=ssl._create_unverified_context()) as res:
            charset = res.headers.get_content_charset() or "utf-8"
            body = res.read()
    return body.decode(charset, errors="replace")


def describe_fetch_error(exc: Exception) -> str:
    if isinstance(exc, HTTPError):
        return f"HTTP {exc.code}"
    if isinstance(exc, URLError):
        return f"unreachable ({exc.reason})"
    return f"{type(exc).__name__}: {exc}"


def strip_comments(css: str) -> str:
    return re.sub(r"/\*.*?\*/", "", css, flags=re.S)


def parse_declarations(block: Optional[str]) -> Dict[str, str]:
    """Parse ``prop: value; ...`` text into a dict.

    Each piece is split on its first colon and trimmed. Pieces without a
    property or a value are dropped; later duplicates win.
    """
    out: Dict[str, str] = {}
    if not block:
        return out
    for part in block.split(";"):
        prop, sep, val = part.partition(":")
        if not sep:
            continue
        prop = prop.strip()
        val = val.strip()
        if prop and val:
            out[prop] = val
    return out


def parse_inline_style(attrs: Dict[str, str]) -> Dict[str, str]:
    return parse_declarations(attrs.get("style"))


_BLOCK_RE = re.compile(r"([^{}]*)\{([^{}]*)\}")


def iter_css_blocks(css: str) -> Iterator[Tuple[str, str]]:
    """Yield ``(selector, body)`` for every innermost rule block in source order.

    There is no validation: rules nested in at-rules come out as their own
    pair, and anything unterminated is skipped.
    """
    for match in _BLOCK_RE.finditer(strip_comments(css)):
        yield match.group(1).strip(), match.group(2)


def _lower_keys(decls: Dict[str, str]) -> Dict[str, str]:
    return {prop.lower(): val for prop, val in decls.items()}


_FONT_FACE_RE = re.compile(
    r"font-family\s*:\s*[\"']([^\"']+)[\"'];\s*font-weight\s*:\s*([^;]+);\s*([^}]+)"
)
_LETTER_SPACING_RE = re.compile(r"letter-spacing\s*:\s*([^;]+);")


def font_face_descriptor(body: str) -> Optional[FontDescriptor]:
    """Read a ``@font-face`` body laid out as ``font-family: "<f>"; font-weight: <w>; ...``.

    The weight must directly follow the quoted family. Letter spacing is only
    looked for in the declarations after the weight.
    """
    match = _FONT_FACE_RE.search(body)
    if not match:
        return None
    family, weight, rest = match.groups()
    spacing = _LETTER_SPACING_RE.search(rest)
    return FontDescriptor(
        family=family.strip(),
        font_weight=weight.strip(),
        letter_spacings=spacing.group(1).strip() if spacing else "normal",
    )


def font_rule_descriptor(body: str) -> Optional[FontDescriptor]:
    decls = _lower_keys(parse_declarations(body))
    found = {prop: decls[prop] for prop in FONT_RULE_PROPS if prop in decls}
    family = re.sub(r"[\"']", "", found.get("font-family", ""))
    # Only custom-property references such as var(--font-heading) are reported here.
    if not family or family.startswith("inherit") or not family.startswith("var"):
        return None
    return FontDescriptor(
        family=family,
        font_weight=found.get("font-weight", "normal"),
        letter_spacings=found.get("letter-spacing", "normal"),
    )


def extract_fonts_from_css(css_text: str) -> List[FontDescriptor]:
    blocks = list(iter_css_blocks(css_text))
    fonts: List[FontDescriptor] = []

    for selector, body in blocks:
        if not re.search(r"@font-face$", selector, flags=re.I):
            continue
        descriptor = font_face_descriptor(body)
        if descriptor:
            fonts.append(descriptor)

    for _, body in blocks:
        if "font" not in body:
            continue
        descriptor = font_rule_descriptor(body)
        if descriptor:
            fonts.append(descriptor)

    return fonts


def parse_google_font_url(url: str) -> Optional[FontDescriptor]:
    query = url.split("?", 1)[1] if "?" in url else ""
    families = parse_qs(query).get("family")
    if not families:
        return None
    family, _, variants = families[0].partition(":")
    if variants.startswith("wght@"):
        variants = variants[len("wght@"):]
    variants = variants or "400"
    return FontDescriptor(
        family=family,
        font_weight="700" if "700" in variants else "400",
        letter_spacings="normal",
        url=url,
    )


def class_styles(css_text: str, class_names: Iterable[str]) -> Dict[str, str]:
    """Collect declarations from every block whose selector ends with one of the classes."""
    blocks = list(iter_css_blocks(css_text))
    styles: Dict[str, str] = {}
    for class_name in class_names:
        pattern = re.compile(r"\." + re.escape(class_name) + r"\s*$")
        for selector, body in blocks:
            if pattern.search(selector):
                styles.update(parse_declarations(body))
    return styles


def resolve_stylesheet_url(href: str, page_url: Optional[str] = None) -> str:
    if href.startswith("//"):
        return "https:" + href
    if href.startswith(("http://", "https://")):
        return href
    if page_url:
        return urljoin(page_url, href)
    return "https:" + href


def fetch_stylesheets(urls: List[str], class_names: List[str], page_url: Optional[str] = None) -> StylesheetResult:
    """Fetch each stylesheet in order and merge its class styles and fonts.

    Fetches run one at a time so later stylesheets override earlier ones.
    A stylesheet that fails to fetch or parse is logged and skipped.
    """
    result = StylesheetResult()
    for href in urls:
        resolved = resolve_stylesheet_url(href, page_url)
        try:
            css_text = fetch_text(resolved)
            styles = class_styles(css_text, class_names)
            fonts = extract_fonts_from_css(css_text)
        except Exception as exc:
            logger.warning("Error fetching or parsing CSS from %s: %s", resolved, describe_fetch_error(exc))
            continue
        logger.debug("Stylesheet %s: %d declarations, %d fonts", resolved, len(styles), len(fonts))
        result.external_styles.update(styles)
        result.fonts.extend(fonts)
    return result


def dedupe_by_family(fonts: Iterable[FontDescriptor]) -> List[FontDescriptor]:
    first_seen: Dict[str, FontDescriptor] = {}
    for font in fonts:
        first_seen.setdefault(font.family, font)
    return list(first_seen.values())


def extract_page(url: str) -> ExtractionResult:
    try:
        html_text = fetch_text(url)
    except Exception as exc:
        logger.error("Failed to fetch %s: %s", url, describe_fetch_error(exc))
        raise PageFetchError() from exc

    index = StorefrontIndex()
    try:
        index.feed(html_text)
        index.close()
    except Exception as exc:
        logger.error("Failed to parse %s: %s", url, exc)
        raise PageFetchError() from exc

    google_fonts: List[FontDescriptor] = []
    for href in index.stylesheets:
        if GOOGLE_FONTS_HOST in href:
            parsed = parse_google_font_url(href)
            if parsed:
                google_fonts.append(parsed)

    if index.button_attrs is None:
        logger.info("No element matches %s on %s", BUTTON_SELECTOR, url)
        raise ButtonNotFound()

    inline_styles = parse_inline_style(index.button_attrs)
    class_names = index.button_attrs.get("class", "").split()

    sheets = fetch_stylesheets(index.stylesheets, class_names, page_url=url)
    combined = {**sheets.external_styles, **inline_styles}
    fonts = dedupe_by_family(google_fonts + sheets.fonts)
    return ExtractionResult(fonts=fonts, primary_button=combined)


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Extract add-to-cart button styles and fonts from a storefront URL")
    ap.add_argument("url", help="Storefront page URL (https://...) to inspect")
    ap.add_argument("-o", "--output", help="Write the JSON report to this file instead of stdout")
    ap.add_argument("-v", "--verbose", action="store_true", help="Log every stylesheet fetch")
    args = ap.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="%(levelname)s:%(message)s")

    try:
        result = extract_page(args.url)
    except ExtractionError as exc:
        print(json.dumps({"error": str(exc)}), file=sys.stderr)
        return 1

    report = json.dumps(result.to_dict(), indent=2)
    if args.output:
        Path(args.output).write_text(report + "\n", encoding="utf-8")
        print(f"Report written to {args.output}")
    else:
        print(report)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
