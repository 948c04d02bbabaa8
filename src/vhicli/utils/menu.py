"""Interactive terminal menus based on simple_term_menu."""

from typing import Any

from simple_term_menu import TerminalMenu


def select_menu(items: list[str], title: str) -> int | None:
    """Show a single-select menu. Returns selected index or None if cancelled.

    ``/`` starts a search, which helps on projects with many resources.
    """
    menu = TerminalMenu(
        items,
        title=title,
        menu_cursor="> ",
        menu_cursor_style=("fg_cyan", "bold"),
        show_search_hint=True,
    )
    return menu.show()


def resource_label(resource: dict[str, Any]) -> str:
    """Menu entry for an API resource: ``name (id)``."""
    return f"{resource.get('name') or '-'} ({resource['id']})"


def select_resource(resources: list[dict[str, Any]], title: str) -> str | None:
    """Pick one API resource. Returns its ID or None if cancelled."""
    idx = select_menu([resource_label(r) for r in resources], title)
    if idx is None:
        return None
    return resources[idx]["id"]
