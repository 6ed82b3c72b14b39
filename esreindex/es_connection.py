from elasticsearch import Elasticsearch, RequestsHttpConnection


def get_es(es_url, config, connections=None):
    """
    Return an elasticsearch client for es_url; clients are cached in `connections` per url
    retries are disabled on the client, esreindex.lib.transport owns the retry policy
    :param es_url: str, base url of the cluster (ex. http://127.0.0.1:9200)
    :param config: esreindex configuration (flask.Config or dict)
    :param connections: dict, cache of url -> client
    :return: Elasticsearch
    """
    if connections is not None and es_url in connections:
        return connections[es_url]

    kwargs = {
        'connection_class': RequestsHttpConnection,
        'timeout': config['REQUEST_TIMEOUT'],
        'max_retries': 0,
        'retry_on_timeout': False,
        'verify_certs': config['VERIFY_CERTS'],
    }
    if config.get('HTTP_AUTH'):
        kwargs['http_auth'] = tuple(config['HTTP_AUTH'])

    es = Elasticsearch(hosts=[es_url], **kwargs)
    if connections is not None:
        connections[es_url] = es
    return es
