from chronicle.markdown_render import convert_wiki_links, excerpt, render_markdown


def test_wiki_links_become_bold():
    assert convert_wiki_links('Met [[Thorn]] at [[Cinder|the city]].') == \
        'Met **Thorn** at **the city**.'


def test_render_markdown():
    html = render_markdown('Line one\nLine two\n\n| a | b |\n|---|---|\n| 1 | 2 |')
    assert '<br />' in html
    assert '<table>' in html
    assert render_markdown('') == ''
    assert render_markdown(None) == ''


def test_excerpt():
    assert excerpt('short') == 'short'
    assert excerpt('x' * 250) == 'x' * 200 + '...'
    assert excerpt(None) == ''
