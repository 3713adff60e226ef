"""
Hierarchy Kernel — Constants

Role names, root-resolution defaults and gesture reasons live here as
module-level values.
"""

# --- Roles (derived, never persisted) ---
TOP_EXECUTIVE: str = "top_executive"
DEPARTMENT_HEAD: str = "department_head"
TEAM_LEADER: str = "team_leader"
TEAM_MEMBER: str = "team_member"

ROLES = (TOP_EXECUTIVE, DEPARTMENT_HEAD, TEAM_LEADER, TEAM_MEMBER)

# --- Root resolution ---
# Compared case-insensitively against Position.title.
DEFAULT_TOP_EXECUTIVE_TITLES = (
    "ceo",
    "chief executive officer",
    "president",
    "대표이사",
    "대표",
    "사장",
)

# --- Team policies used by the propagation rule table ---
TEAM_INHERIT: str = "inherit"
TEAM_KEEP: str = "keep"
TEAM_CLEAR: str = "clear"

# --- Gesture outcome reasons ---
REASON_ACCEPTED: str = "accepted"
REASON_NOT_EDITING: str = "not_editing"
REASON_UNKNOWN_NODE: str = "unknown_node"
REASON_ROOT_NOT_DRAGGABLE: str = "root_not_draggable"
REASON_NO_DRAG: str = "no_drag_in_progress"
REASON_NO_TARGET: str = "no_drop_target"
REASON_SAME_PARENT: str = "same_parent"
REASON_SELF_DROP: str = "self_drop"
REASON_CYCLE: str = "would_create_cycle"
