"""Data models for the alerter module."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class FormattedAlert:
    """A buy alert rendered for delivery.

    Attributes:
        title: Short alert headline.
        telegram_html: Message body using Telegram's HTML markup.
        plain_text: Plain text rendering for logs and dry runs.
        links: Relevant links (transaction, chart).
    """

    title: str
    telegram_html: str
    plain_text: str
    links: dict[str, str] = field(default_factory=dict)
