"""Fetching and parsing RSS documents."""

from __future__ import annotations

import html
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from xml.etree.ElementTree import Element

from defusedxml import DefusedXmlException
from defusedxml import ElementTree as SafeElementTree

USER_AGENT = "gator"

_CHANNEL_FIELDS = ("title", "link", "description")
_ITEM_FIELDS = ("title", "link", "description", "pubDate")


@dataclass
class RSSItem:
    """One entry of a feed."""

    title: str = ""
    link: str = ""
    description: str = ""
    pub_date: str = ""


@dataclass
class RSSFeed:
    """A feed's channel and its entries."""

    title: str = ""
    link: str = ""
    description: str = ""
    items: list[RSSItem] = field(default_factory=list)


def _text(element: Element) -> str:
    """Character data directly inside *element*, nested elements skipped."""
    return (element.text or "") + "".join(child.tail or "" for child in element)


def _fields(element: Element, names: tuple[str, ...]) -> dict[str, str]:
    values = dict.fromkeys(names, "")
    for child in element:
        if child.tag in values:
            values[child.tag] = _text(child)
    return values


def parse_feed(data: bytes | str) -> RSSFeed:
    """Parse an RSS document; a document that cannot be parsed gives an empty feed."""
    try:
        root = SafeElementTree.fromstring(data)
    except (SafeElementTree.ParseError, DefusedXmlException, ValueError):
        return RSSFeed()

    feed = RSSFeed()
    for channel in root.iter("channel") if root.tag == "channel" else root.findall("channel"):
        values = _fields(channel, _CHANNEL_FIELDS)
        feed.title = values["title"]
        feed.link = values["link"]
        feed.description = values["description"]
        for element in channel.findall("item"):
            item = _fields(element, _ITEM_FIELDS)
            feed.items.append(
                RSSItem(
                    title=html.unescape(item["title"]),
                    link=item["link"],
                    description=html.unescape(item["description"]),
                    pub_date=item["pubDate"],
                )
            )
        if root.tag == "channel":
            break

    feed.title = html.unescape(feed.title)
    feed.description = html.unescape(feed.description)
    return feed


def fetch_feed(url: str, timeout: float | None = None) -> RSSFeed:
    """Download the document at *url* and parse it as RSS."""
    request = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            body = response.read()
    except urllib.error.HTTPError as exc:
        try:
            body = exc.read()
        finally:
            exc.close()
    return parse_feed(body)


def parse_pub_date(text: str, now: datetime | None = None) -> datetime:
    """Parse an RFC 1123 publication date, falling back to *now*."""
    try:
        return parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        return now if now is not None else datetime.now(timezone.utc)