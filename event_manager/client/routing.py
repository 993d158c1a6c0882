"""
Route access decisions and the layout render contract.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

DEFAULT_REDIRECT = "/signup"
HOME = "/"


@dataclass(frozen=True)
class AccessDecision:
    allow: bool
    redirect_target: Optional[str] = None
    error: Optional[str] = None
    pending: bool = False


def check_access(is_authenticated: bool, role: Optional[str], required_role: Optional[str] = None,
                 redirect_to: str = DEFAULT_REDIRECT, is_loading: bool = False) -> AccessDecision:
    """
    Decide whether a protected route may render.

    - While authentication is still loading, no decision is made yet.
    - Unauthenticated visitors go to `redirect_to` (the signup page by default).
    - Authenticated users with the wrong role go home with an error message.
    """
    if is_loading:
        return AccessDecision(allow=False, pending=True)
    if not is_authenticated:
        return AccessDecision(allow=False, redirect_target=redirect_to)
    if required_role and role != required_role:
        return AccessDecision(
            allow=False,
            redirect_target=HOME,
            error=f"Access denied. {required_role} role required.",
        )
    return AccessDecision(allow=True)


@dataclass(frozen=True)
class NavLink:
    label: str
    path: str


@dataclass
class LayoutContext:
    is_authenticated: bool
    user: Optional[Dict[str, Any]]
    nav_links: List[NavLink] = field(default_factory=list)
    logout: Optional[Callable[[], None]] = None


def nav_links_for(is_authenticated: bool, role: Optional[str]) -> List[NavLink]:
    links = [NavLink("Events", HOME)]
    if is_authenticated and role == "admin":
        links.append(NavLink("Create Event", "/admin/create-event"))
    if not is_authenticated:
        links.extend([NavLink("Login", "/login"), NavLink("Sign Up", "/signup")])
    return links


def render_layout(auth_state, render: Callable[[LayoutContext], Any]) -> Any:
    """
    Build the layout context from `auth_state` and hand it to `render`.

    Args:
        auth_state (AuthState): Source of the current identity and logout action.
        render (callable): Receives the LayoutContext; its return value is passed through.
    """
    context = LayoutContext(
        is_authenticated=auth_state.is_authenticated,
        user=auth_state.user,
        nav_links=nav_links_for(auth_state.is_authenticated, auth_state.role),
        logout=auth_state.logout,
    )
    return render(context)
