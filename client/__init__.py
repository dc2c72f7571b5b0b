"""
Client core of the media forum: state container, selectors, optimistic
mutations and the persistence API client.
"""
from .api_client import ForumApiClient
from .mutations import Mutation, MutationLayer, MutationStatus
from .state import AppState, reduce
from .store import Store

__all__ = [
    'AppState',
    'ForumApiClient',
    'Mutation',
    'MutationLayer',
    'MutationStatus',
    'Store',
    'reduce',
]
