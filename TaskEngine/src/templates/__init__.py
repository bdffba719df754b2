"""Built-in template library"""

from .library import BUILTIN_TEMPLATES, get_builtin_template, list_builtin_templates

__all__ = [
    "BUILTIN_TEMPLATES",
    "get_builtin_template",
    "list_builtin_templates",
]
