# gateway/api/loaders.py
"""
Batched loaders. A fresh set is built for every request context so cached
keys never outlive the operation that loaded them.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from aiodataloader import DataLoader


async def batch_users(keys: Sequence[Any], models) -> List[Optional[Any]]:
    """
    Resolve user ids in one query. The result is aligned with ``keys`` and
    holds None for ids with no matching row.
    """
    ids = [int(key) for key in keys]
    users = await models.users.find_by_ids(set(ids))
    by_id: Dict[int, Any] = {user.id: user for user in users}
    return [by_id.get(user_id) for user_id in ids]


@dataclass
class Loaders:
    user: DataLoader


def create_loaders(models) -> Loaders:
    async def load_users(keys):
        return await batch_users(keys, models)

    return Loaders(user=DataLoader(load_users))
