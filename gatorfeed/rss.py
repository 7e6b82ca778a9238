"""Fetching and parsing RSS feeds."""

from __future__ import annotations

import html
import urllib.error
import urllib.request
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Union

USER_AGENT = "gator"
DEFAULT_TIMEOUT = 10.0


@dataclass
class RSSItem:
    """One entry of a feed's channel."""

    title: str = ""
    link: str = ""
    description: str = ""
    pub_date: str = ""


@dataclass
class RSSFeed:
    """A feed's channel and the items it lists."""

    title: str = ""
    link: str = ""
    description: str = ""
    items: list[RSSItem] = field(default_factory=list)


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _direct_text(element: ET.Element) -> str:
    """Character data directly inside ``element``; nested elements are skipped."""
    return (element.text or "") + "".join(child.tail or "" for child in element)


def _parse_item(element: ET.Element) -> RSSItem:
    item = RSSItem()
    for child in element:
        name = _local_name(child.tag)
        if name == "title":
            item.title = _direct_text(child)
        elif name == "link":
            item.link = _direct_text(child)
        elif name == "description":
            item.description = _direct_text(child)
        elif name == "pubDate":
            item.pub_date = _direct_text(child)
    return item


def _read_channel(element: ET.Element, feed: RSSFeed) -> None:
    for child in element:
        name = _local_name(child.tag)
        if name == "title":
            feed.title = _direct_text(child)
        elif name == "link":
            feed.link = _direct_text(child)
        elif name == "description":
            feed.description = _direct_text(child)
        elif name == "item":
            feed.items.append(_parse_item(child))


def parse_feed(data: Union[bytes, str]) -> RSSFeed:
    """Parse an RSS document, unescaping HTML entities in titles and descriptions."""
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise ValueError(f"invalid feed XML: {exc}") from exc

    feed = RSSFeed()
    for child in root:
        if _local_name(child.tag) == "channel":
            _read_channel(child, feed)

    feed.title = html.unescape(feed.title)
    feed.description = html.unescape(feed.description)
    for item in feed.items:
        item.title = html.unescape(item.title)
        item.description = html.unescape(item.description)
    return feed


def fetch_feed(url: str, timeout: float = DEFAULT_TIMEOUT) -> RSSFeed:
    """Download the feed at ``url`` and parse it.

    The body is parsed whatever the response status; network failures raise
    ``OSError`` and malformed documents raise ``ValueError``.
    """
    request = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            data = response.read()
    except urllib.error.HTTPError as exc:
        try:
            data = exc.read()
        finally:
            exc.close()
    return parse_feed(data)