#!/usr/bin/env python
import argparse
import logging
import sys

from esreindex.config import build_options, load_config
from esreindex.exceptions import ReindexError
from esreindex.reindexer import Reindexer


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Copy an ElasticSearch index (settings, mappings, documents) "
                                                 "to another index, possibly on another cluster.")
    parser.add_argument('src', help='source index, [url/]index')
    parser.add_argument('dst', help='destination index, [url/]index')
    parser.add_argument('-r', '--remove', action='store_true',
                        help='remove the destination index first and recreate its settings and mappings')
    parser.add_argument('-u', '--update', action='store_true',
                        help='update existing documents (default: only create missing ones)')
    parser.add_argument('-f', '--frame', type=int, default=None,
                        help='number of documents fetched per scroll round (default: BATCH_SIZE setting)')
    parser.add_argument('-y', '--yes', action='store_true', help='do not ask for confirmation')
    parser.add_argument('-c', '--config', default=None, help='python settings file')
    parser.add_argument('-v', '--verbose', action='store_true', help='debug logging')
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(stream=sys.stderr, format="%(asctime)s %(levelname)s %(message)s",
                        level=logging.DEBUG if args.verbose else logging.INFO)
    logger = logging.getLogger('esreindex')

    try:
        config = load_config(args.config)
        options = build_options(config, remove_destination=args.remove, update_existing=args.update,
                                batch_size=args.frame, interactive=not args.yes)
        reindexer = Reindexer(args.src, args.dst, options, config=config, logger=logger)
    except (ReindexError, OSError) as e:
        logger.error("%s", e)
        return 1

    try:
        success = reindexer.copy()
    except KeyboardInterrupt:
        logger.warning("Aborted.")
        return 1
    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
