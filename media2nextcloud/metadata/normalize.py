import logging

from .. import config
from ..models import PipelineState


def normalize_buckets(state: PipelineState) -> int:
    """
    Moves sentinel-year buckets ("0001/MM") to the placeholder year ("2000/MM").
    Month grouping is kept. Returns the number of rewritten entries.
    """
    rewritten = 0
    prefix = f"{config.SENTINEL_YEAR}/"
    for path, bucket in state.path_index.items():
        if bucket.startswith(prefix):
            month = bucket.split("/", 1)[1]
            state.path_index[path] = f"{config.PLACEHOLDER_YEAR}/{month}"
            rewritten += 1

    if rewritten:
        logging.info(f"Moved {rewritten} undated media files to {config.PLACEHOLDER_YEAR}")
    return rewritten
