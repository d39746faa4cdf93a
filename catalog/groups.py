from __future__ import annotations

import logging
from typing import List, Literal, Mapping, Sequence, Tuple

from catalog.items import CatalogItem
from catalog.queries import GroupKey, display_text


logger = logging.getLogger(__name__)

GroupSortMode = Literal["alphabetical", "count-desc", "count-asc"]
GROUP_SORT_MODES = ("alphabetical", "count-desc", "count-asc")
DEFAULT_GROUP_SORT: GroupSortMode = "count-desc"


def _alpha_key(key: GroupKey) -> Tuple[int, str, str]:
    # the null group sorts after every named group
    if key is None:
        return (1, "", "")
    text = display_text(key)
    return (0, text.casefold(), text)


def sort_status_groups(
    groups: Mapping[GroupKey, Sequence[CatalogItem]],
    mode: str = DEFAULT_GROUP_SORT,
) -> List[Tuple[GroupKey, Sequence[CatalogItem]]]:
    if mode not in GROUP_SORT_MODES:
        logger.debug("Unknown group sort mode %r, using %s", mode, DEFAULT_GROUP_SORT)
        mode = DEFAULT_GROUP_SORT

    entries = list(groups.items())
    if mode == "alphabetical":
        return sorted(entries, key=lambda e: _alpha_key(e[0]))
    if mode == "count-asc":
        return sorted(entries, key=lambda e: (len(e[1]), _alpha_key(e[0])))
    return sorted(entries, key=lambda e: (-len(e[1]), _alpha_key(e[0])))


def group_label(key: GroupKey, empty_label: str = "(no status)") -> str:
    if key is None:
        return empty_label
    return display_text(key) or empty_label
