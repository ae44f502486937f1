"""Per-recipient rendering of campaign HTML.

A campaign body is stored once with a ``{{name}}`` placeholder. Before each
send it is personalized, given an open-tracking pixel, has its links routed
through the click tracker and finally gets an unsubscribe footer.
"""
import html
import re
from typing import Callable, Optional
from urllib.parse import quote

from badcompany.services.email_service import template_renderer

NAME_PLACEHOLDER = re.compile(r"{{name}}")

# Captures the href value and whatever attributes follow it
ANCHOR_HREF = re.compile(r'<a\s+(?:[^>]*?\s+)?href="([^"]*)"([^>]*)>', re.IGNORECASE)


def _base(site_url: str) -> str:
    return site_url.rstrip("/")


def open_tracking_url(site_url: str, campaign_id: int, subscriber_id: int) -> str:
    return f"{_base(site_url)}/api/newsletter-track-open?cid={campaign_id}&sid={subscriber_id}"


def click_tracking_url(site_url: str, campaign_id: int, subscriber_id: int, target_url: str) -> str:
    return (
        f"{_base(site_url)}/api/newsletter-track-click"
        f"?cid={campaign_id}&sid={subscriber_id}&url={quote(target_url, safe='')}"
    )


def unsubscribe_url(site_url: str, campaign_id: Optional[int], subscriber_id: int) -> str:
    url = f"{_base(site_url)}/api/newsletter-unsubscribe?sid={subscriber_id}"
    if campaign_id is not None:
        url += f"&cid={campaign_id}"
    return url


def personalize(content: str, name: Optional[str], fallback: str) -> str:
    """Substitute every ``{{name}}`` with the subscriber's name or the fallback."""
    value = html.escape(name, quote=False) if name else fallback
    return NAME_PLACEHOLDER.sub(lambda _: value, content)


def tracking_pixel(site_url: str, campaign_id: int, subscriber_id: int) -> str:
    src = open_tracking_url(site_url, campaign_id, subscriber_id)
    return f'<img src="{src}" width="1" height="1" alt="" style="display:none;" />'


def rewrite_links(content: str, build_url: Callable[[str], str]) -> str:
    """Point every ``<a href>`` at the URL returned by ``build_url(original)``.

    Attributes between ``<a`` and ``href`` are dropped; those after it are kept.
    """
    def _replace(match: re.Match) -> str:
        original, rest = match.group(1), match.group(2)
        return f'<a href="{build_url(original)}"{rest}>'

    return ANCHOR_HREF.sub(_replace, content)


def render_campaign_html(
    content: str,
    *,
    site_url: str,
    campaign_id: int,
    subscriber_id: int,
    subscriber_name: Optional[str],
    name_fallback: str,
) -> str:
    """Build the final HTML body for one recipient.

    The footer is appended after link rewriting so the unsubscribe link is
    never routed through the click tracker.
    """
    body = personalize(content, subscriber_name, name_fallback)
    body += tracking_pixel(site_url, campaign_id, subscriber_id)
    body = rewrite_links(
        body,
        lambda url: click_tracking_url(site_url, campaign_id, subscriber_id, url),
    )
    footer = template_renderer.render(
        "campaign_footer.html",
        unsubscribe_url=unsubscribe_url(site_url, campaign_id, subscriber_id),
    )
    return body + footer
