# eve_core/client/stores_core.py

from typing import Any, Dict, List, Optional

from eve_core.client.base import BaseStore
from eve_core.modules.collaboration.models import Collaboration
from eve_core.modules.collaboration.repository import CollaborationRepository
from eve_core.modules.eves.models import EVE, Action, EVEAction
from eve_core.modules.eves.repository import ActionRepository, EveActionRepository, EveRepository
from eve_core.modules.tasks.models import Task
from eve_core.modules.tasks.repository import TaskRepository


class EveStore(BaseStore):
    def __init__(self, session):
        super().__init__(session)
        self.eves: List[EVE] = []
        self.current: Optional[EVE] = None

    @property
    def repo(self) -> EveRepository:
        return EveRepository(self.session.gateway)

    async def fetch_eves(self) -> List[EVE]:
        async with self._operation("fetch_eves"):
            self.eves = await self.repo.list_for_company(await self.session.company_id())
            return self.eves
        return []

    async def get_eve(self, eve_id: str) -> Optional[EVE]:
        async with self._operation("get_eve"):
            self.current = await self.repo.get_by_id(eve_id)
            return self.current
        return None

    async def create_eve(self, data: Dict[str, Any]) -> Optional[EVE]:
        async with self._operation("create_eve"):
            eve = await self.repo.create({
                **data,
                "company_id": await self.session.company_id(),
                "created_by": self.session.require_user().id,
            })
            self.eves = [eve, *self.eves]
            return eve
        return None

    async def update_eve(self, eve_id: str, data: Dict[str, Any]) -> Optional[EVE]:
        async with self._operation("update_eve"):
            eve = await self.repo.update(eve_id, data)
            if eve:
                self.eves = [eve if e.id == eve_id else e for e in self.eves]
                if self.current and self.current.id == eve_id:
                    self.current = eve
            return eve
        return None

    async def delete_eve(self, eve_id: str) -> bool:
        async with self._operation("delete_eve"):
            deleted = await self.repo.delete(eve_id)
            self.eves = [e for e in self.eves if e.id != eve_id]
            return deleted
        return False


class ActionStore(BaseStore):
    def __init__(self, session):
        super().__init__(session)
        self.actions: List[Action] = []
        self.eve_actions: List[Action] = []

    @property
    def repo(self) -> ActionRepository:
        return ActionRepository(self.session.gateway)

    @property
    def links(self) -> EveActionRepository:
        return EveActionRepository(self.session.gateway)

    async def fetch_actions(self) -> List[Action]:
        async with self._operation("fetch_actions"):
            self.actions = await self.repo.list_visible_to(await self.session.company_id())
            return self.actions
        return []

    async def get_action(self, action_id: str) -> Optional[Action]:
        async with self._operation("get_action"):
            return await self.repo.get_by_id(action_id)
        return None

    async def create_action(self, data: Dict[str, Any]) -> Optional[Action]:
        async with self._operation("create_action"):
            is_global = bool(data.get("is_global"))
            action = await self.repo.create({
                **data,
                "is_global": is_global,
                "company_id": None if is_global else await self.session.company_id(),
                "created_by": self.session.require_user().id,
            })
            self.actions = [*self.actions, action]
            return action
        return None

    async def update_action(self, action_id: str, data: Dict[str, Any]) -> Optional[Action]:
        async with self._operation("update_action"):
            changes = dict(data)
            if changes.get("is_global"):
                changes["company_id"] = None
            action = await self.repo.update(action_id, changes)
            if action:
                self.actions = [action if a.id == action_id else a for a in self.actions]
            return action
        return None

    async def delete_action(self, action_id: str) -> bool:
        async with self._operation("delete_action"):
            deleted = await self.repo.delete(action_id)
            self.actions = [a for a in self.actions if a.id != action_id]
            return deleted
        return False

    async def assign_action_to_eve(self, eve_id: str, action_id: str, parameters: Optional[Dict[str, Any]] = None) -> Optional[EVEAction]:
        async with self._operation("assign_action_to_eve"):
            return await self.links.create({
                "eve_id": eve_id,
                "action_id": action_id,
                "parameters": parameters or {},
                "created_by": self.session.require_user().id,
            })
        return None

    async def remove_action_from_eve(self, eve_id: str, action_id: str) -> bool:
        async with self._operation("remove_action_from_eve"):
            removed = await self.links.delete_by({"eve_id": eve_id, "action_id": action_id})
            self.eve_actions = [a for a in self.eve_actions if a.id != action_id]
            return removed > 0
        return False

    async def get_eve_actions(self, eve_id: str) -> List[Action]:
        async with self._operation("get_eve_actions"):
            self.eve_actions = await self.links.actions_for_eve(eve_id, self.repo)
            return self.eve_actions
        return []


class TaskStore(BaseStore):
    def __init__(self, session):
        super().__init__(session)
        self.tasks: List[Task] = []

    @property
    def repo(self) -> TaskRepository:
        return TaskRepository(self.session.gateway)

    async def fetch_tasks(self, eve_id: Optional[str] = None) -> List[Task]:
        async with self._operation("fetch_tasks"):
            self.tasks = await self.repo.list_for_company(await self.session.company_id(), eve_id)
            return self.tasks
        return []

    async def get_task(self, task_id: str) -> Optional[Task]:
        async with self._operation("get_task"):
            return await self.repo.get_by_id(task_id)
        return None

    async def create_task(self, data: Dict[str, Any]) -> Optional[Task]:
        async with self._operation("create_task"):
            task = await self.repo.create({
                "status": "pending",
                "priority": "medium",
                "parameters": {},
                **data,
                "company_id": await self.session.company_id(),
                "created_by": self.session.require_user().id,
            })
            self.tasks = [task, *self.tasks]
            return task
        return None

    async def update_task(self, task_id: str, data: Dict[str, Any]) -> Optional[Task]:
        async with self._operation("update_task"):
            task = await self.repo.update(task_id, data)
            if task:
                self.tasks = [task if t.id == task_id else t for t in self.tasks]
            return task
        return None

    async def delete_task(self, task_id: str) -> bool:
        async with self._operation("delete_task"):
            deleted = await self.repo.delete(task_id)
            self.tasks = [t for t in self.tasks if t.id != task_id]
            return deleted
        return False


class CollaborationStore(BaseStore):
    """New collaborations go through the collaboration-request endpoint, not this store."""

    def __init__(self, session):
        super().__init__(session)
        self.collaborations: List[Collaboration] = []

    @property
    def repo(self) -> CollaborationRepository:
        return CollaborationRepository(self.session.gateway)

    async def fetch_collaborations(self, eve_id: Optional[str] = None) -> List[Collaboration]:
        async with self._operation("fetch_collaborations"):
            self.collaborations = await self.repo.list_for_company(await self.session.company_id(), eve_id)
            return self.collaborations
        return []

    async def get_collaboration(self, collaboration_id: str) -> Optional[Collaboration]:
        async with self._operation("get_collaboration"):
            return await self.repo.get_by_id(collaboration_id)
        return None

    async def update_collaboration(self, collaboration_id: str, data: Dict[str, Any]) -> Optional[Collaboration]:
        async with self._operation("update_collaboration"):
            collaboration = await self.repo.update(collaboration_id, data)
            if collaboration:
                self.collaborations = [collaboration if c.id == collaboration_id else c for c in self.collaborations]
            return collaboration
        return None

    async def delete_collaboration(self, collaboration_id: str) -> bool:
        async with self._operation("delete_collaboration"):
            deleted = await self.repo.delete(collaboration_id)
            self.collaborations = [c for c in self.collaborations if c.id != collaboration_id]
            return deleted
        return False
