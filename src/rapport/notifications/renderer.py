"""Jinja2 template renderer for reminder messages.

Resolves templates with a two-tier loader:
1. User-specified ``templates_path`` (overrides)
2. Built-in templates shipped with the package

Templates are looked up as ``<reminder-type>_subject.txt`` and
``<reminder-type>_body.html``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from jinja2 import (
    BaseLoader,
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    PackageLoader,
    select_autoescape,
)

from rapport.notifications.base import RenderedMessage

if TYPE_CHECKING:
    from rapport.models.reminder import Reminder


class TemplateRenderer:
    """Renders reminder subjects and bodies from Jinja2 templates."""

    def __init__(self, templates_path: str | None = None) -> None:
        loaders: list[BaseLoader] = []
        if templates_path:
            loaders.append(FileSystemLoader(templates_path))
        loaders.append(PackageLoader("rapport.notifications", "templates"))

        self._env = Environment(
            loader=ChoiceLoader(loaders),
            autoescape=select_autoescape(["html"], default=False),
            keep_trailing_newline=False,
        )

    def render(self, reminder: Reminder) -> RenderedMessage:
        """Render *reminder* into a :class:`RenderedMessage`.

        Raises :class:`jinja2.TemplateError` when a template is missing
        or fails to render.
        """
        payload = {
            "subject": reminder.payload.subject,
            "preview": reminder.payload.preview,
            "deep_link": reminder.payload.deep_link,
            "fallback_query": reminder.payload.fallback_query,
        }
        context = {
            **payload,
            "contact_email": reminder.contact_email,
            "contact_name": reminder.contact_name or reminder.contact_email,
            "reminder_type": reminder.type.value,
            "priority": reminder.priority,
            "created_at": reminder.created_at,
            "attempt": reminder.attempt_count,
        }
        type_name = reminder.type.value
        subject = self._env.get_template(f"{type_name}_subject.txt").render(**context).strip()
        body = self._env.get_template(f"{type_name}_body.html").render(**context)
        return RenderedMessage(
            subject=subject,
            body=body,
            reminder_type=type_name,
            contact_email=reminder.contact_email,
            contact_name=reminder.contact_name,
            payload=payload,
        )
