"""
Draft Storage

Persistence of unfinished form values. The engine never owns persistence: a
``DraftStore`` is injected into ``FormSubmissionService``, which saves drafts
after a quiet period, restores them when the form is opened and clears them
after a successful submit or a cancel.

Drafts are stored under ``form-draft-<key>``.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Union, runtime_checkable

from .exceptions import DraftStoreError

import structlog
logger = structlog.get_logger("business.drafts")


DRAFT_KEY_PREFIX = 'form-draft-'


def draft_storage_key(key: str) -> str:
    return f"{DRAFT_KEY_PREFIX}{key}"


@runtime_checkable
class DraftStore(Protocol):
    """Load, save and clear form values by draft key."""

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    def save(self, key: str, values: Dict[str, Any]) -> None:
        ...

    def clear(self, key: str) -> None:
        ...


class InMemoryDraftStore:
    """Process-local draft store; values are copied in and out."""

    def __init__(self):
        self._drafts: Dict[str, Dict[str, Any]] = {}

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        draft = self._drafts.get(draft_storage_key(key))
        return dict(draft) if draft is not None else None

    def save(self, key: str, values: Dict[str, Any]) -> None:
        self._drafts[draft_storage_key(key)] = dict(values)

    def clear(self, key: str) -> None:
        self._drafts.pop(draft_storage_key(key), None)

    def __contains__(self, key: str) -> bool:
        return draft_storage_key(key) in self._drafts


class JsonFileDraftStore:
    """
    Draft store keeping one JSON file per draft in ``directory``.

    Values that JSON cannot represent natively (dates, decimals) are stored
    as their string form.

    Raises:
        DraftStoreError: When a draft cannot be read, decoded or written
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    @classmethod
    def from_config(cls, config: Any) -> 'JsonFileDraftStore':
        """Build a store rooted at ``config.DRAFT_DIR`` (or ``./.drafts``)."""
        return cls(config.DRAFT_DIR or os.path.join(os.getcwd(), '.drafts'))

    def path_for(self, key: str) -> Path:
        return self.directory / f"{draft_storage_key(key)}.json"

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            with path.open('r', encoding='utf-8') as handle:
                values = json.load(handle)
        except (OSError, ValueError) as e:
            raise DraftStoreError("Failed to load draft", draft_key=key, cause=e)
        if not isinstance(values, dict):
            raise DraftStoreError("Stored draft is not an object", draft_key=key)
        return values

    def save(self, key: str, values: Dict[str, Any]) -> None:
        path = self.path_for(key)
        temp_path = path.with_suffix('.json.tmp')
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with temp_path.open('w', encoding='utf-8') as handle:
                json.dump(values, handle, default=str)
            os.replace(temp_path, path)
        except (OSError, TypeError, ValueError) as e:
            temp_path.unlink(missing_ok=True)
            raise DraftStoreError("Failed to save draft", draft_key=key, cause=e)
        logger.debug("Draft saved", draft_key=key, path=str(path))

    def clear(self, key: str) -> None:
        try:
            self.path_for(key).unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise DraftStoreError("Failed to clear draft", draft_key=key, cause=e)


__all__ = [
    'DRAFT_KEY_PREFIX',
    'draft_storage_key',
    'DraftStore',
    'InMemoryDraftStore',
    'JsonFileDraftStore',
]
