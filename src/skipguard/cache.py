import logging

import diskcache

from skipguard import config

logger = logging.getLogger("skipguard")


def get_cache() -> diskcache.Cache:
    logger.info("Opening cache dir: %s", config.DISKCACHE_DIR)
    return diskcache.Cache(config.DISKCACHE_DIR)
