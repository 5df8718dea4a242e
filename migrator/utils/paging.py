# migrator/utils/paging.py

from typing import Callable, Iterator, List, Tuple, TypeVar

T = TypeVar('T')


def iterate_pages(fetch_page: Callable[[int, int], List[T]],
                  limit: int,
                  start: int = 0) -> Iterator[Tuple[int, int, List[T]]]:
    """
    Yield (page_index, offset, page) until the source is exhausted.

    An empty page, or a page shorter than ``limit``, ends the walk; the
    short page is still yielded. No extra round trip is made after it.
    """
    if limit <= 0:
        raise ValueError("Page limit must be positive")

    offset = start
    page_index = 0
    while True:
        page = list(fetch_page(offset, limit))
        if not page:
            return

        yield page_index, offset, page

        if len(page) < limit:
            return
        offset += len(page)
        page_index += 1
