"""
Template Registry

Resolves template keys: built-in event templates first, then the
notification_templates table.
"""
import logging
import re
from typing import Any, Dict, Mapping, Optional

from .event_registry import EVENT_REGISTRY
from ..models.notification import NotificationTemplate
from ..storage.template_storage import TemplateStorage

logger = logging.getLogger("notifyhub.services.templates")

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def render_template(template: str, context: Mapping[str, Any]) -> str:
    """Substitute {{name}} placeholders; unknown names are left untouched"""
    def replace(match):
        name = match.group(1)
        return str(context[name]) if name in context else match.group(0)

    return _PLACEHOLDER.sub(replace, template)


class TemplateRegistry:
    """Lookup for notification templates"""

    def __init__(
        self,
        storage: Optional[TemplateStorage] = None,
        builtins: Optional[Dict[str, NotificationTemplate]] = None,
    ):
        self.storage = storage
        if builtins is None:
            builtins = {key: event.to_template() for key, event in EVENT_REGISTRY.items()}
        self._builtins = builtins

    def register(self, template: NotificationTemplate):
        """Add or replace a built-in template"""
        self._builtins[template.key] = template

    async def get_by_key(self, key: str) -> Optional[NotificationTemplate]:
        template = self._builtins.get(key)
        if template is not None:
            return template
        if self.storage is None:
            return None
        return await self.storage.get_by_key(key)
