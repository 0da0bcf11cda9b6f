"""
Card filters applied by the host before scheduling.

The scheduler only understands a boolean ``include`` predicate. Tag and HSK
selection narrow the candidate list; starred and ignored flags become
predicates.
"""


def filter_items(items, tags=None, hsk_levels=None) -> list:
    """
    Keep items matching the selected tags and HSK levels.

    An item passes the tag filter if any of its tags is selected. An empty
    selection disables that filter.
    """
    selected_tags = set(tags or [])
    selected_hsk = set(hsk_levels or [])
    filtered = list(items or [])

    if selected_tags:
        filtered = [item for item in filtered
                    if any(tag in selected_tags for tag in (item.tags or []))]

    if selected_hsk:
        filtered = [item for item in filtered if item.hsk and item.hsk in selected_hsk]

    return filtered


def flag_predicate(starred_only=False, show_ignored=False):
    """
    Build the review-session predicate for starred and ignored flags.

    With ``starred_only`` only starred cards pass. Ignored cards are hidden
    unless ``show_ignored`` is set, in which case only ignored cards pass.
    """
    def include(item):
        if starred_only and not item.starred:
            return False
        return bool(item.ignored) == bool(show_ignored)
    return include


def tristate_flag_predicate(starred=None, ignored=None):
    """Predicate where None means any, True only flagged and False only unflagged."""
    def include(item):
        if starred is not None and bool(item.starred) != starred:
            return False
        if ignored is not None and bool(item.ignored) != ignored:
            return False
        return True
    return include


def available_filters(items) -> dict:
    """Sorted tags and HSK levels present among ``items``."""
    tags = set()
    hsk_levels = set()
    for item in items or []:
        tags.update(item.tags or [])
        if item.hsk:
            hsk_levels.add(item.hsk)
    return {'tags': sorted(tags), 'hsk': sorted(hsk_levels)}
