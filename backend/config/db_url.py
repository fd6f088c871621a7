"""
Parse a PostgreSQL connection URL into a Django DATABASES entry.
"""
import re
from typing import Optional
from urllib.parse import parse_qsl, unquote

DATABASE_URL_PATTERN = re.compile(
    r'postgres(?:ql)?://(?P<user>[^:@/]+)(?::(?P<password>[^@]*))?@'
    r'(?P<host>[^:/?]+)(?::(?P<port>\d+))?/(?P<name>[^?]+)'
    r'(?:\?(?P<query>.*))?$'
)


def parse_database_url(url: str) -> Optional[dict]:
    """
    Convert a postgres:// or postgresql:// URL to Django database settings.

    Query parameters (e.g. sslmode=require for Neon) are passed through
    to the driver as OPTIONS.

    Returns:
        A DATABASES['default'] dict, or None if the URL doesn't match
    """
    match = DATABASE_URL_PATTERN.match(url.strip())
    if not match:
        return None

    config = {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': unquote(match.group('name')),
        'USER': unquote(match.group('user')),
        'PASSWORD': unquote(match.group('password') or ''),
        'HOST': match.group('host'),
        'PORT': match.group('port') or '',
    }

    if match.group('query'):
        config['OPTIONS'] = dict(parse_qsl(match.group('query')))

    return config
