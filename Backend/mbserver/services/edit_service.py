import logging
from typing import Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from mbserver.models.registry import Edit, EditData, EditNote, Editor
from mbserver.models.edit import EditStatus, EditType
from mbserver.services.database import get_db

logger = logging.getLogger(__name__)

# Editor privilege flags
AUTO_EDITOR_FLAG = 1


class EditService:
    """The edit queue: stores proposed changes for voting, never applies them."""
    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def get_edit(self, edit_id: int) -> Optional[Edit]:
        """Retrieve an edit with its data and notes."""
        result = await self.db.execute(
            select(Edit).where(Edit.id == edit_id).options(
                selectinload(Edit.data), selectinload(Edit.notes)
            )
        )
        return result.scalar_one_or_none()

    async def create_edit(
        self,
        edit_type: EditType,
        editor: Editor,
        data: dict,
        edit_note: Optional[str] = None,
        make_votable: bool = False,
    ) -> Edit:
        """Insert an open edit, its data and an optional edit note."""
        autoedit = bool(editor.privs & AUTO_EDITOR_FLAG) and not make_votable
        db_edit = Edit(
            editor_id=editor.id,
            type=int(edit_type),
            status=EditStatus.OPEN,
            autoedit=autoedit,
        )
        self.db.add(db_edit)
        await self.db.flush()  # Use flush to get the ID before the transaction commits.

        self.db.add(EditData(edit_id=db_edit.id, data=data))
        if edit_note and edit_note.strip():
            self.db.add(EditNote(edit_id=db_edit.id, editor_id=editor.id, text=edit_note.strip()))

        await self.db.commit()
        logger.info(f"Created edit #{db_edit.id} ({edit_type.name}) by {editor.name}")
        return db_edit


async def get_edit_service(db: AsyncSession = Depends(get_db)) -> EditService:
    return EditService(db)
