"""HTML utility functions for Folio.

Functions:
    try_add_class: Append CSS classes to the top-level elements of a fragment.
    inject_reload_script: Insert the live reload script into an HTML page.
"""

from __future__ import annotations

from bs4 import BeautifulSoup
from bs4.element import Tag
from markupsafe import Markup

RELOAD_SCRIPT_TEMPLATE = """
<script>
(() => {{
  const ws = new WebSocket('ws://' + location.hostname + ':{ws_port}');
  ws.onmessage = (event) => {{
    const data = JSON.parse(event.data || '{{}}');
    if (data.type === 'reload') location.reload();
  }};
}})();
</script>
"""


def try_add_class(html: str, classes: str) -> Markup:
    """Append classes to every top-level element of an HTML fragment.

    Text and comments at the top level are left untouched, as is everything
    nested below the first level.

    Args:
        html: HTML fragment, e.g. a rendered markdown section.
        classes: Space-separated class names.

    Returns:
        The fragment re-serialized as markup.

    Examples:
        >>> try_add_class('<p>Hi</p>', 'lead')
        Markup('<p class="lead">Hi</p>')
    """
    soup = BeautifulSoup(str(html), "html.parser")
    extra = classes.split()
    for child in soup.children:
        if not isinstance(child, Tag):
            continue
        existing = child.get("class") or []
        if isinstance(existing, str):
            existing = existing.split()
        child["class"] = [*existing, *[c for c in extra if c not in existing]]
    return Markup(str(soup))


def inject_reload_script(content: str, script: str) -> str:
    """Insert a script before ``</body>``, or append it when there is none."""
    if "</body>" in content:
        return content.replace("</body>", f"{script}</body>", 1)
    return content + script
