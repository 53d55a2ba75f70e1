import re, secrets, logging
from flask import current_app
from ..errors import ValidationFailed
from ..models import Page

logger = logging.getLogger(__name__)

SLUG_LENGTH = 8
SLUG_CHARS = 'abcdefghijklmnopqrstuvwxyz0123456789'
_SLUG_RE = re.compile(f'^[{SLUG_CHARS}]{{{SLUG_LENGTH}}}$')


class SlugGenerationFailed(ValidationFailed):
    message = 'Unable to generate unique slug. Please try again.'


def generate_slug() -> str:
    return ''.join(secrets.choice(SLUG_CHARS) for _ in range(SLUG_LENGTH))


def generate_slug_candidates(count: int) -> list[str]:
    candidates = []
    while len(candidates) < count:
        s = generate_slug()
        if s not in candidates:
            candidates.append(s)
    return candidates


def is_valid_slug(slug) -> bool:
    return isinstance(slug, str) and bool(_SLUG_RE.match(slug))


def choose_slug(proposed: str | None = None) -> str:
    """Return `proposed` when free, else the first free random candidate."""
    if proposed and Page.query.filter_by(slug=proposed).first() is None:
        return proposed

    candidates = generate_slug_candidates(current_app.config['MAX_SLUG_ATTEMPTS'])
    taken = {p.slug for p in Page.query.with_entities(Page.slug).filter(Page.slug.in_(candidates))}
    for c in candidates:
        if c not in taken:
            if proposed:
                logger.info('slug collision, using generated slug %s', c)
            return c
    raise SlugGenerationFailed()
