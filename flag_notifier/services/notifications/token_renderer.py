import html
import re
from typing import Any, Callable, Dict, Optional

from .types import SiteInfo

TOKEN_PATTERN = re.compile(r"\[([a-z0-9_-]+):([^\[\]\s]+)\]")


class TokenRenderer:
    """
    Replaces `[type:name]` tokens using the dispatch context.

    Context keys: `item`, `recipient`, `site` (SiteInfo) and `locale`.
    Unknown tokens, and tokens whose value is missing, are removed so no raw
    token ever reaches a recipient. With `markup=True` replacement values are
    HTML-escaped for use inside an HTML body.
    """

    def __init__(self, item_path: str = "/content/{id}"):
        self.item_path = item_path
        self._resolvers: Dict[str, Callable[[str, Dict[str, Any]], Optional[Any]]] = {
            "site": self._site_token,
            "item": self._item_token,
            "user": self._user_token,
        }

    def render(
        self,
        template: str,
        context: Dict[str, Any],
        locale: str,
        *,
        markup: bool = False,
    ) -> str:
        if not template:
            return ""

        scoped = dict(context)
        scoped.setdefault("locale", locale)

        def replace(match: "re.Match[str]") -> str:
            resolver = self._resolvers.get(match.group(1))
            value = resolver(match.group(2), scoped) if resolver else None
            if value is None:
                return ""
            text = str(value)
            return html.escape(text) if markup else text

        return TOKEN_PATTERN.sub(replace, template)

    def _site_token(self, name: str, context: Dict[str, Any]) -> Optional[Any]:
        site: Optional[SiteInfo] = context.get("site")
        if site is None:
            return None
        if name == "name":
            return site.name
        if name == "url":
            return site.base_url
        return None

    def _item_token(self, name: str, context: Dict[str, Any]) -> Optional[Any]:
        item = context.get("item")
        if item is None:
            return None
        if name == "id":
            return item.id
        if name == "title":
            return item.title
        if name == "kind":
            return item.kind
        if name == "url":
            return self.item_path.format(id=item.id)
        if name == "url:absolute":
            site: Optional[SiteInfo] = context.get("site")
            base_url = site.base_url.rstrip("/") if site else ""
            return f"{base_url}{self.item_path.format(id=item.id)}"
        return None

    def _user_token(self, name: str, context: Dict[str, Any]) -> Optional[Any]:
        account = context.get("recipient")
        if account is None:
            return None
        if name == "id":
            return account.id
        if name == "name":
            return getattr(account, "username", None)
        if name == "display-name":
            return (
                getattr(account, "display_name", None)
                or getattr(account, "username", None)
                or account.email
            )
        if name == "mail":
            return account.email
        if name == "locale":
            return context.get("locale")
        return None
