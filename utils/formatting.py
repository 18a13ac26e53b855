from __future__ import annotations

import html
from typing import Any, Dict, Iterable, List


ACTION_TITLES = {
    "create": "🆕 Новая техкарта",
    "update": "✏️ Техкарта обновлена",
    "delete": "🗑 Техкарта удалена",
}


def escape_html(value: Any) -> str:
    """Escape text for Telegram HTML parse mode; None becomes an empty string."""
    if value is None:
        return ""
    return html.escape(str(value), quote=True)


def _clean(value: Any) -> str:
    return str(value or "").strip()


def recipe_card(recipe: Dict[str, Any]) -> str:
    """Текст карточки рецепта для отправки в чат."""
    lines = [f"📖 <b>{escape_html(recipe.get('title'))}</b>", "", "🛒 Ингредиенты:"]
    for ing in recipe.get("ingredients") or []:
        lines.append(
            f"• {escape_html(ing.get('name'))}: "
            f"{escape_html(ing.get('amount'))} {escape_html(ing.get('unit'))}"
        )
    return "\n".join(lines)


def recipe_changes(old: Dict[str, Any], new: Dict[str, Any]) -> List[str]:
    """Human readable diff between two versions of a recipe.

    Compares title, output weight and the ingredient list (matched by trimmed
    name). Values are HTML-escaped, new values are bold.
    """
    changes: List[str] = []
    if _clean(old.get("title")) != _clean(new.get("title")):
        changes.append(
            f"Название: {escape_html(old.get('title'))} -> <b>{escape_html(new.get('title'))}</b>"
        )
    if _clean(old.get("outputWeight")) != _clean(new.get("outputWeight")):
        changes.append(
            f"Выход: {escape_html(old.get('outputWeight') or '-')} -> "
            f"<b>{escape_html(new.get('outputWeight'))}</b>"
        )

    old_map = {_clean(i.get("name")): i for i in old.get("ingredients") or []}
    for new_ing in new.get("ingredients") or []:
        name = _clean(new_ing.get("name"))
        old_ing = old_map.pop(name, None)
        if old_ing is None:
            changes.append(
                f"Добавлен: <b>{escape_html(new_ing.get('name'))}</b> "
                f"({escape_html(new_ing.get('amount'))} {escape_html(new_ing.get('unit'))})"
            )
            continue
        if _clean(old_ing.get("amount")) != _clean(new_ing.get("amount")) or _clean(
            old_ing.get("unit")
        ) != _clean(new_ing.get("unit")):
            changes.append(
                f"{escape_html(new_ing.get('name'))}: "
                f"{escape_html(old_ing.get('amount'))} {escape_html(old_ing.get('unit'))} -> "
                f"<b>{escape_html(new_ing.get('amount'))} {escape_html(new_ing.get('unit'))}</b>"
            )
    for removed in old_map.values():
        changes.append(f"Удален: {escape_html(removed.get('name'))}")
    return changes


def notification_text(action: str, title: str, changes: Iterable[str] = ()) -> str:
    """Сообщение об изменении техкарты. changes уже экранированы."""
    head = ACTION_TITLES.get(action, "📖 Техкарта")
    text = f"{head}: <b>{escape_html(title)}</b>"
    changes = list(changes)
    if changes:
        text += "\n\n" + "\n".join(f"• {c}" for c in changes)
    return text
