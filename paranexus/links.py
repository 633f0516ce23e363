from __future__ import annotations

from urllib.parse import urlparse

from .assistant import Assistant
from .models import LinkMetadata, ParaCategory


FAVICON_URL = "https://www.google.com/s2/favicons?domain={domain}&sz=64"


def is_url(text: str) -> bool:
    return text.strip().startswith("http")


def domain_of(url: str) -> str | None:
    try:
        host = urlparse(url.strip()).hostname
    except ValueError:
        return None
    if not host:
        return None
    return host.replace("www.", "", 1)


def favicon_url(domain: str) -> str:
    return FAVICON_URL.format(domain=domain)


def build_link_metadata(url: str, assistant: Assistant) -> LinkMetadata | None:
    domain = domain_of(url)
    if domain is None:
        return None
    return LinkMetadata(
        display_title=assistant.summarize_link(url),
        domain=domain,
        favicon=favicon_url(domain),
        slug=assistant.generate_slug(url),
        is_pinned=False,
    )


def prepare_new_task(
    title: str,
    category: ParaCategory | None,
    assistant: Assistant,
) -> tuple[ParaCategory, LinkMetadata | None]:
    """Resolve the category and link metadata for a new Daily task.

    `category=None` means auto: links default to Resources, everything else is
    categorized by the assistant.
    """

    metadata = build_link_metadata(title, assistant) if is_url(title) else None
    if category is not None:
        return category, metadata
    if metadata is not None:
        return ParaCategory.RESOURCES, metadata
    return assistant.categorize(title), metadata
