"""ORM 模型导出集合。"""

from esurat_api.models.disposition import (
    Disposition,
    DispositionInstruction,
    DispositionInstructionLink,
    DispositionRecipient,
)
from esurat_api.models.identity import Permission, Role, RolePermission, Team, TeamMember, User, UserRole
from esurat_api.models.letter import ArchiveCode, Letter, LetterApprover, LetterCategory
from esurat_api.models.system import ActivityLog, Setting, Template

__all__ = [
    "ActivityLog",
    "ArchiveCode",
    "Disposition",
    "DispositionInstruction",
    "DispositionInstructionLink",
    "DispositionRecipient",
    "Letter",
    "LetterApprover",
    "LetterCategory",
    "Permission",
    "Role",
    "RolePermission",
    "Setting",
    "Team",
    "TeamMember",
    "Template",
    "User",
    "UserRole",
]
