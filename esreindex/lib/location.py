import re
from collections import namedtuple

from esreindex.config import DEFAULT_URL
from esreindex.exceptions import InvalidLocation


LOCATION_RE = re.compile(r'^(.*)/(.*?)$')

Location = namedtuple('Location', ['base_url', 'index'])


def resolve_location(raw, default_url=DEFAULT_URL):
    """
    Split a "[url/]index" string into its endpoint and index name
        "http://es:9200/logs" -> ("http://es:9200", "logs")
        "logs"                -> (default_url, "logs")
    :param raw: str
    :param default_url: str, endpoint used when raw carries no url
    :return: Location
    """
    if not raw:
        raise InvalidLocation('empty index location')

    match = LOCATION_RE.match(raw)
    if match:
        base_url, index = match.groups()
    else:
        base_url, index = default_url, raw

    if not base_url:
        raise InvalidLocation('no url before the index name in location: %s' % raw)
    if not index:
        raise InvalidLocation('no index name in location: %s' % raw)
    return Location(base_url=base_url, index=index)


def display(location):
    return '%s/%s' % (location.base_url, location.index)
