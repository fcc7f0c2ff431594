"""领域枚举定义。"""

from enum import StrEnum


class LetterStatus(StrEnum):
    """公文流转状态。"""

    DRAFT = "DRAFT"  # 草稿，仅创建人可见可改。
    PENDING_APPROVAL = "PENDING_APPROVAL"  # 已提交，按顺序等待审批人审批。
    PENDING_SIGN = "PENDING_SIGN"  # 审批完成，等待签署人上传签署版。
    SIGNED = "SIGNED"  # 已签署，可发起批示。
    REJECTED = "REJECTED"  # 被审批人或签署人驳回。
    CANCELLED = "CANCELLED"  # 已撤销。


# 允许删除的公文状态。
DELETABLE_LETTER_STATUSES = (LetterStatus.DRAFT, LetterStatus.REJECTED, LetterStatus.CANCELLED)
# 二维码验证视为有效的状态。
VERIFIABLE_LETTER_STATUSES = (LetterStatus.SIGNED, LetterStatus.PENDING_SIGN)


class LetterPriority(StrEnum):
    """公文优先级。"""

    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


class SecurityLevel(StrEnum):
    """公文密级。"""

    SANGAT_RAHASIA = "SANGAT_RAHASIA"  # 绝密。
    RAHASIA = "RAHASIA"  # 机密。
    TERBATAS = "TERBATAS"  # 限制。
    BIASA = "BIASA"  # 普通。


class ApproverStatus(StrEnum):
    """单个审批人的审批状态。"""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class DispositionStatus(StrEnum):
    """批示单状态。"""

    PENDING_NUMBER = "PENDING_NUMBER"  # 已创建，等待登记编号。
    PENDING_SIGN = "PENDING_SIGN"  # 已编号并生成批示单，等待创建人签署。
    SUBMITTED = "SUBMITTED"  # 签署版已上传，下发给接收人。


class DispositionUrgency(StrEnum):
    """批示紧急程度。"""

    BIASA = "BIASA"
    SEGERA = "SEGERA"
    PENTING = "PENTING"
    RAHASIA = "RAHASIA"


class RecipientStatus(StrEnum):
    """批示接收人处理状态。"""

    PENDING = "PENDING"
    READ = "READ"
    COMPLETED = "COMPLETED"


class SettingType(StrEnum):
    """系统设置值类型。"""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"


class TemplateFileType(StrEnum):
    """模板文件类型。"""

    PDF = "PDF"
    DOCX = "DOCX"


class StampType(StrEnum):
    """PDF 盖章类型。"""

    QR = "QR"  # 将 data 编码为二维码图片。
    IMAGE = "IMAGE"  # data 为 base64 PNG（签名/草签）。


class TeamMemberRole(StrEnum):
    """团队内角色，与系统角色无关。"""

    LEADER = "LEADER"  # 组长。
    MEMBER = "MEMBER"
