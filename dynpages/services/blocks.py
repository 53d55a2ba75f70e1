import re
from markupsafe import Markup, escape

_TAG_RE = re.compile(r'<[^>]*>')


def _text(value) -> Markup:
    # editor output carries inline html; keep only the text
    return escape(_TAG_RE.sub('', str(value or '')))


def _list_items(items):
    out = []
    for it in items if isinstance(items, list) else []:
        if isinstance(it, dict):
            out.append(Markup('<li>{}{}</li>').format(
                _text(it.get('content') or it.get('text')),
                _list(it.get('items'), 'ul') if it.get('items') else '',
            ))
        else:
            out.append(Markup('<li>{}</li>').format(_text(it)))
    return Markup('').join(out)


def _list(items, tag='ul'):
    return Markup('<{0}>{1}</{0}>').format(Markup(tag), _list_items(items))


def _safe_src(url) -> str:
    url = str(url or '')
    return url if url.startswith(('http://', 'https://', '/')) else ''


def _dict(value) -> dict:
    return value if isinstance(value, dict) else {}


def _items(data) -> list:
    items = data.get('items')
    return items if isinstance(items, list) else []


def render_block(block: dict) -> Markup:
    kind = block.get('type')
    data = _dict(block.get('data'))
    if kind == 'header':
        level = data.get('level') if data.get('level') in (1, 2, 3, 4, 5, 6) else 2
        return Markup('<h{0}>{1}</h{0}>').format(level, _text(data.get('text')))
    if kind == 'paragraph':
        return Markup('<p>{}</p>').format(_text(data.get('text')))
    if kind == 'list':
        return _list(data.get('items'), 'ol' if data.get('style') == 'ordered' else 'ul')
    if kind == 'checklist':
        items = [Markup('<li>{} {}</li>').format('☑' if i.get('checked') else '☐', _text(i.get('text')))
                 for i in _items(data) if isinstance(i, dict)]
        return Markup('<ul class="checklist">{}</ul>').format(Markup('').join(items))
    if kind == 'quote':
        return Markup('<blockquote><p>{}</p><cite>{}</cite></blockquote>').format(
            _text(data.get('text')), _text(data.get('caption')))
    if kind == 'code':
        return Markup('<pre><code>{}</code></pre>').format(data.get('code') or '')
    if kind == 'delimiter':
        return Markup('<hr>')
    if kind == 'image':
        src = _safe_src(_dict(data.get('file')).get('url') or data.get('url'))
        if not src:
            return Markup('')
        return Markup('<figure><img src="{}" alt="{}"><figcaption>{}</figcaption></figure>').format(
            src, _text(data.get('caption')), _text(data.get('caption')))
    if kind == 'linkTool':
        link = _safe_src(data.get('link'))
        meta = _dict(data.get('meta'))
        return Markup('<a class="link" href="{}" rel="noopener nofollow">{}</a>').format(
            link, _text(meta.get('title') or link))
    if kind == 'button':
        webhook_id = data.get('webhookId')
        if isinstance(webhook_id, int) and not isinstance(webhook_id, bool) and webhook_id > 0:
            return Markup('<button class="webhook" data-webhook-id="{}">{}</button>').format(
                webhook_id, _text(data.get('text') or 'Submit'))
        return Markup('<button disabled>{}</button>').format(_text(data.get('text') or 'Submit'))
    text = data.get('text') or data.get('caption') or data.get('message')
    return Markup('<p>{}</p>').format(_text(text)) if text else Markup('')


def render_blocks(content) -> Markup:
    blocks = (content or {}).get('blocks') or [] if isinstance(content, dict) else []
    return Markup('\n').join(render_block(b) for b in blocks if isinstance(b, dict))
