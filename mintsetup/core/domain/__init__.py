"""
Domain — pure functions with NO subprocess calls, NO filesystem access,
NO network calls. Pure input→output.
"""

from mintsetup.core.domain.dag import (  # noqa: F401
    ancestors,
    check_ids,
    dependency_levels,
    find_cycle,
    topological_order,
)
from mintsetup.core.domain.files import (  # noqa: F401
    deep_merge,
    expand,
    managed_block,
    merge_json_list,
    merge_json_object,
)
from mintsetup.core.domain.values import (  # noqa: F401
    append_items,
    format_gvariant,
    parse_gvariant,
    remove_items,
    values_equal,
)
