from flask import session

from .draft import ModificationDraft

DRAFT_SESSION_KEY = "modification_draft"


def get_draft(fare_lookup=None):
    """The open modification draft for this session, or None."""
    data = session.get(DRAFT_SESSION_KEY)
    if not data:
        return None
    return ModificationDraft.from_dict(data, fare_lookup=fare_lookup)


def save_draft(draft: ModificationDraft) -> dict:
    """
    Fare lists are regenerated on load, so only the editable state is kept in
    the cookie.
    """
    data = draft.to_dict(include_fares=False)
    session[DRAFT_SESSION_KEY] = data
    session.modified = True
    return data


def clear_draft():
    session.pop(DRAFT_SESSION_KEY, None)
