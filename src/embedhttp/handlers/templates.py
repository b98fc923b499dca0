"""
=============================================================================
TEMPLATE RENDERER
=============================================================================

Placeholder substitution, nothing more:

    <!-- profile.html -->
    <h1>Hello {{name}}</h1><p>{{name}} has {{count}} posts</p>

    render_template("profile.html", {"name": "Ada", "count": "3"})
    → "<h1>Hello Ada</h1><p>Ada has 3 posts</p>"

Every occurrence of {{key}} is replaced, for every key in the mapping.
Placeholders with no matching key are left untouched. Values are
inserted verbatim (no HTML escaping), so only pass trusted text.

=============================================================================
"""

from pathlib import Path
from typing import Any, Mapping, Union


def render_template(filepath: Union[str, Path], data: Mapping[str, Any]) -> str:
    """
    Read a UTF-8 template and substitute {{key}} placeholders.

    Raises:
        FileNotFoundError: If the template does not exist or cannot be read.
    """
    path = Path(filepath)

    if not path.is_file():
        raise FileNotFoundError(f"No such template: {filepath}")

    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise FileNotFoundError(f"Cannot read template: {filepath}") from e

    for key, value in data.items():
        content = content.replace("{{" + key + "}}", str(value))

    return content
