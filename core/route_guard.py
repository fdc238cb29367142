"""Page access gate: protected pages require a stored token."""

from typing import Callable, Optional

from core.session_store import TokenStore

LOGIN_PAGE = "login"
REGISTER_PAGE = "register"
PUBLIC_PAGES = {LOGIN_PAGE, REGISTER_PAGE}


def resolve_page(requested: str, token_store: TokenStore) -> str:
    """Page that should actually render. Checked on every rerun, never cached."""
    if requested in PUBLIC_PAGES:
        return requested
    if not token_store.is_logged_in():
        return LOGIN_PAGE
    return requested


def guarded(
    render: Callable[[], None],
    token_store: TokenStore,
    on_redirect: Callable[[str], None],
    page: Optional[str] = None,
) -> bool:
    """Run `render` only for a signed-in session; otherwise redirect to login."""
    target = resolve_page(page or "protected", token_store)
    if target == LOGIN_PAGE and page not in PUBLIC_PAGES:
        on_redirect(LOGIN_PAGE)
        return False
    render()
    return True
