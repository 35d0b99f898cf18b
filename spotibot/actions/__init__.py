"""Handler groups, one per action category."""

from spotibot.actions.base import ActionGroup, ActionParams, NoParams
from spotibot.actions.playlist import PlaylistActions
from spotibot.actions.search import SearchActions
from spotibot.actions.system import SystemActions
from spotibot.actions.track import TrackActions
from spotibot.actions.user import UserActions

__all__ = [
    "ActionGroup",
    "ActionParams",
    "NoParams",
    "PlaylistActions",
    "SearchActions",
    "SystemActions",
    "TrackActions",
    "UserActions",
]
