from __future__ import annotations

from .models import RawActor


def normalize_email(email: str) -> str:
    return email.strip().lower()


def normalize_name(name: str) -> str:
    return name.strip().casefold()


def normalize_github_username(username: str) -> str:
    return username.strip().lstrip("@").casefold()


def github_username_from_email(email: str) -> str:
    """
    Extract GitHub username from GitHub noreply patterns:
      - username@users.noreply.github.com
      - 123456+username@users.noreply.github.com
    Returns normalized username or "".
    """
    e = normalize_email(email)
    if not e:
        return ""
    if not e.endswith("@users.noreply.github.com"):
        return ""
    local = e.split("@", 1)[0]
    if "+" in local:
        local = local.rsplit("+", 1)[-1]
    return normalize_github_username(local)


def actor_id_for(name: str, email: str, login: str = "") -> str:
    """
    Stable identity key for a contributor.

    Account handles win over emails, noreply emails collapse onto their handle,
    and a bare name is the last resort.
    """
    if login.strip():
        return normalize_github_username(login)
    gh = github_username_from_email(email)
    if gh:
        return gh
    e = normalize_email(email)
    if e:
        return e
    return normalize_name(name)


def raw_actor(name: str, email: str, login: str = "") -> RawActor:
    return RawActor(id=actor_id_for(name, email, login), name=name.strip(), email=email.strip())
