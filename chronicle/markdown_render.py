import re

import markdown as _md

MARKDOWN_EXTENSIONS = ['nl2br', 'tables', 'fenced_code']


def convert_wiki_links(text):
    """Convert [[wiki-links]] to bold text.

    Handles two forms:
      [[Target]]           → **Target**
      [[Target|Display]]   → **Display**
    """
    def replace_link(match):
        inner = match.group(1)
        if '|' in inner:
            _target, display = inner.split('|', 1)
            return f'**{display.strip()}**'
        return f'**{inner.strip()}**'

    return re.sub(r'\[\[([^\]]+)\]\]', replace_link, text)


def render_markdown(text):
    """Render note content (Markdown) to an HTML string."""
    if not text:
        return ''
    return _md.markdown(convert_wiki_links(text), extensions=MARKDOWN_EXTENSIONS)


def excerpt(text, length=200):
    """First `length` characters of text, with an ellipsis if it was cut."""
    if not text:
        return ''
    if len(text) <= length:
        return text
    return text[:length] + '...'
