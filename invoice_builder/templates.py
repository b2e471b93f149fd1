"""Saved line-item templates, bounded in count and by the templates slot quota."""

from __future__ import annotations

import logging
from dataclasses import fields
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Sequence, Tuple

from dateutil import parser as dateutil_parser

from . import config
from .models import LineItem, Template
from .storage import MISSING, QuotaStore, Slot, UsageInfo, WriteResult

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

EDITABLE_FIELDS = frozenset(item.name for item in fields(Template)) - {"id"}

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _timestamp(raw: Optional[str]) -> datetime:
    if not raw:
        return _EPOCH
    try:
        parsed = dateutil_parser.isoparse(raw)
    except (ValueError, OverflowError):
        return _EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def recency_key(template: Template) -> Tuple[int, datetime]:
    """Sort key placing used templates first, then by most recent timestamp."""
    if template.last_used:
        return (1, _timestamp(template.last_used))
    return (0, _timestamp(template.created))


def _isoformat(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class TemplateRepository:
    def __init__(
        self,
        store: QuotaStore,
        max_templates: int = config.MAX_TEMPLATES,
        clock: Optional[Clock] = None,
    ) -> None:
        self.store = store
        self.max_templates = max_templates
        self.clock = clock or utc_now

    def list(self) -> List[Template]:
        payload = self.store.read(Slot.TEMPLATES)
        if payload is MISSING or not isinstance(payload, list):
            return []
        templates = []
        for entry in payload:
            if not isinstance(entry, dict):
                continue
            try:
                templates.append(Template.from_dict(entry))
            except (TypeError, ValueError):
                logger.warning("Skipping malformed template entry %r", entry.get("id"))
        return templates

    def get(self, template_id: str) -> Optional[Template]:
        for template in self.list():
            if template.id == template_id:
                return template
        return None

    def save_all(self, templates: Sequence[Template]) -> WriteResult:
        ordered = sorted(templates, key=recency_key, reverse=True)
        trimmed = ordered[: self.max_templates]
        result = self.store.write(Slot.TEMPLATES, [template.to_dict() for template in trimmed])
        if not result:
            logger.warning("Templates not saved: %s", result.detail)
        return result

    def _new_id(self, now: datetime, existing: Sequence[Template]) -> str:
        base = f"template-{int(now.timestamp() * 1000)}"
        taken = {template.id for template in existing}
        candidate = base
        suffix = 1
        while candidate in taken:
            candidate = f"{base}-{suffix}"
            suffix += 1
        return candidate

    def create(self, name: str, items: Sequence[LineItem], category: Optional[str] = None) -> WriteResult:
        templates = self.list()
        if len(templates) >= self.max_templates:
            templates.sort(key=recency_key)
            evicted = templates.pop(0)
            logger.info("Template limit reached; evicting %s (%s)", evicted.id, evicted.name)

        now = self.clock()
        template = Template(
            id=self._new_id(now, templates),
            name=name,
            category=category or None,
            items=[item.copy() for item in items],
            created=_isoformat(now),
        )
        return self.save_all([*templates, template])

    def update(self, template_id: str, **changes: Any) -> WriteResult:
        templates = self.list()
        for template in templates:
            if template.id != template_id:
                continue
            for name, value in changes.items():
                if name not in EDITABLE_FIELDS:
                    raise AttributeError(f"Template has no editable field {name!r}.")
                setattr(template, name, value)
        return self.save_all(templates)

    def delete(self, template_id: str) -> WriteResult:
        remaining = [template for template in self.list() if template.id != template_id]
        return self.save_all(remaining)

    def mark_used(self, template_id: str) -> WriteResult:
        templates = self.list()
        for template in templates:
            if template.id == template_id:
                template.last_used = _isoformat(self.clock())
                template.use_count += 1
        return self.save_all(templates)

    def storage_info(self) -> UsageInfo:
        return self.store.usage(Slot.TEMPLATES)
