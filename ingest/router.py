"""
Router — which agent owns a category.

Total and pure: every string (unknown, empty, None) maps to exactly one
agent. Anything the table doesn't know goes to the coordinator.
"""

from __future__ import annotations


COORDINATOR = "milo"

# First match wins. Order matters only if a category ever lands in two rows.
ROUTES: tuple[tuple[frozenset[str], str], ...] = (
    (frozenset({"dev", "code", "bug", "feature"}), "forge"),
    (frozenset({"research", "marketing", "seo", "content", "growth"}), "scout"),
    (frozenset({"ops", "devops", "security", "infra", "automation"}), "pulse"),
)

# Every category the table knows, for inferring one from free text
KNOWN_CATEGORIES = frozenset().union(*(cats for cats, _ in ROUTES))

# Role → the category that routes back to an agent of that role
ROLE_CATEGORIES = {
    "dev": "dev",
    "research": "research",
    "ops": "ops",
}


def route_category(category: str | None) -> str:
    """Map a category tag to the responsible agent id."""
    key = (category or "").strip().lower()
    for categories, agent_id in ROUTES:
        if key in categories:
            return agent_id
    return COORDINATOR
