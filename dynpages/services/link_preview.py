import logging
from html.parser import HTMLParser
from urllib.parse import urlparse, urljoin
import requests
from flask import current_app
from .webhooks import validate_url

logger = logging.getLogger(__name__)

MAX_BYTES = 512 * 1024


class _MetaParser(HTMLParser):
    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.meta = {}
        self.title = ''
        self._in_title = False

    def handle_starttag(self, tag, attrs):
        a = dict(attrs)
        if tag == 'title':
            self._in_title = True
        elif tag == 'meta':
            key = (a.get('property') or a.get('name') or '').lower()
            if key and a.get('content') and key not in self.meta:
                self.meta[key] = a['content'].strip()

    def handle_endtag(self, tag):
        if tag == 'title':
            self._in_title = False

    def handle_data(self, data):
        if self._in_title:
            self.title += data


def fallback_meta(url: str) -> dict:
    host = urlparse(url).hostname or url
    return {
        'title': host,
        'description': f'Link to {host}',
        'image': {'url': f'https://www.google.com/s2/favicons?domain={host}&sz=256'},
    }


def fetch_meta(url: str) -> dict:
    url = validate_url(url)
    meta = fallback_meta(url)
    try:
        with requests.get(
            url, timeout=current_app.config['LINK_PREVIEW_TIMEOUT'], stream=True,
            headers={'User-Agent': 'DynamicPages-LinkPreview/1.0'},
        ) as resp:
            if resp.status_code >= 400 or 'html' not in resp.headers.get('Content-Type', ''):
                return meta
            chunks, size = [], 0
            for chunk in resp.iter_content(chunk_size=16 * 1024):
                chunks.append(chunk)
                size += len(chunk)
                if size >= MAX_BYTES:
                    break
            raw = b''.join(chunks)[:MAX_BYTES]
            html = raw.decode(resp.encoding or 'utf-8', errors='replace')
    except requests.RequestException as e:
        logger.info('link preview fetch failed for %s: %s', urlparse(url).netloc, e)
        return meta

    p = _MetaParser()
    p.feed(html)
    title = p.meta.get('og:title') or p.title.strip()
    if title:
        meta['title'] = title
    desc = p.meta.get('og:description') or p.meta.get('description')
    if desc:
        meta['description'] = desc
    if p.meta.get('og:image'):
        meta['image'] = {'url': urljoin(url, p.meta['og:image'])}
    return meta
