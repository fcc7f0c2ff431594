"""数据库持久化的系统设置。

设置以 key/value 字符串存储在 settings 表，对外只暴露已登记的键，
读取时按登记类型转换为 `SystemSettings`，写入时先做类型校验。
"""

from dataclasses import dataclass
import math

from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from esurat_api.models.enums import SettingType
from esurat_api.models.system import Setting


@dataclass(frozen=True)
class SettingDefinition:
    key: str
    field: str
    type: SettingType
    default: str | int | bool


SETTING_DEFINITIONS: dict[str, SettingDefinition] = {
    item.key: item
    for item in (
        SettingDefinition("app.name", "app_name", SettingType.STRING, "E-Surat Digital TVRI"),
        SettingDefinition("app.logo", "app_logo", SettingType.STRING, "/logo.png"),
        SettingDefinition("letter.auto_number_prefix", "letter_auto_number_prefix", SettingType.STRING, "TVRI/SK"),
        SettingDefinition("qr.default_size", "qr_default_size", SettingType.NUMBER, 100),
        SettingDefinition("upload.max_size", "upload_max_size", SettingType.NUMBER, 10 * 1024 * 1024),
        # 消息网关配置仅做存储。
        SettingDefinition("wa.api_url", "wa_api_url", SettingType.STRING, ""),
        SettingDefinition("wa.session", "wa_session", SettingType.STRING, "default"),
        SettingDefinition("wa.api_key", "wa_api_key", SettingType.STRING, ""),
    )
}


class SettingValidationError(ValueError):
    """设置键未登记或值类型不符。"""


class SystemSettings(BaseModel):
    """类型化系统设置。"""

    app_name: str = Field(description="应用显示名称（app.name）。")
    app_logo: str = Field(description="Logo 路径（app.logo）。")
    letter_auto_number_prefix: str = Field(description="公文编号前缀（letter.auto_number_prefix）。")
    qr_default_size: int = Field(ge=50, le=200, description="新建公文的默认二维码尺寸（qr.default_size）。")
    upload_max_size: int = Field(gt=0, description="上传文件大小上限，字节（upload.max_size）。")
    wa_api_url: str = Field(description="消息网关地址（wa.api_url）。")
    wa_session: str = Field(description="消息网关会话名（wa.session）。")
    wa_api_key: str = Field(description="消息网关密钥（wa.api_key）。")


def _parse_stored(definition: SettingDefinition, raw: str) -> str | int | bool:
    """将库中字符串按登记类型转换，无法解析时回退默认值。"""
    if definition.type == SettingType.NUMBER:
        try:
            number = float(raw)
        except ValueError:
            return definition.default
        return int(number) if math.isfinite(number) else definition.default
    if definition.type == SettingType.BOOLEAN:
        return raw.strip().lower() in {"1", "true", "yes"}
    return raw


def _finite_int(definition: SettingDefinition, value: object) -> int:
    """数值设置只接受有限数，按整数存储；inf、nan 与布尔值都拒绝。"""
    message = f"Nilai {definition.key} harus berupa angka"
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise SettingValidationError(message)
    if isinstance(value, int):
        return value
    try:
        number = float(value.strip()) if isinstance(value, str) else value
    except ValueError as exc:
        raise SettingValidationError(message) from exc
    if not math.isfinite(number):
        raise SettingValidationError(message)
    return int(number)


def _serialize(definition: SettingDefinition, value: object) -> str:
    """校验写入值并转换为存储字符串。"""
    if definition.type == SettingType.NUMBER:
        return str(_finite_int(definition, value))
    if definition.type == SettingType.BOOLEAN:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
            return value.strip().lower()
        raise SettingValidationError(f"Nilai {definition.key} harus berupa boolean")
    if not isinstance(value, str):
        raise SettingValidationError(f"Nilai {definition.key} harus berupa teks")
    return value


def _stored_rows(db: Session) -> dict[str, Setting]:
    rows = db.execute(select(Setting).where(Setting.key.in_(list(SETTING_DEFINITIONS)))).scalars().all()
    return {row.key: row for row in rows}


def load_system_settings(db: Session) -> SystemSettings:
    """读取全部登记设置，缺失项使用默认值。"""
    rows = _stored_rows(db)
    values: dict[str, object] = {}
    for key, definition in SETTING_DEFINITIONS.items():
        row = rows.get(key)
        values[definition.field] = _parse_stored(definition, row.value) if row else definition.default
    return SystemSettings.model_validate(values)


def update_system_settings(db: Session, updates: dict[str, object]) -> tuple[SystemSettings, list[str]]:
    """批量写入设置（不提交事务），返回新设置与实际变更的键。"""
    unknown = sorted(key for key in updates if key not in SETTING_DEFINITIONS)
    if unknown:
        raise SettingValidationError(f"Pengaturan tidak dikenal: {', '.join(unknown)}")

    serialized = {key: _serialize(SETTING_DEFINITIONS[key], value) for key, value in updates.items()}

    current = load_system_settings(db).model_dump()
    for key, value in serialized.items():
        definition = SETTING_DEFINITIONS[key]
        current[definition.field] = _parse_stored(definition, value)
    # 整体再校验一次取值范围。
    try:
        result = SystemSettings.model_validate(current)
    except ValueError as exc:
        raise SettingValidationError(f"Nilai pengaturan tidak valid: {exc}") from exc

    rows = _stored_rows(db)
    changed: list[str] = []
    for key, value in serialized.items():
        row = rows.get(key)
        if row is None:
            db.add(Setting(key=key, value=value, type=SETTING_DEFINITIONS[key].type))
            changed.append(key)
        elif row.value != value:
            row.value = value
            changed.append(key)
    db.flush()
    return result, changed


def seed_default_settings(db: Session) -> int:
    """补齐缺失的设置行，返回新增数量。"""
    rows = _stored_rows(db)
    created = 0
    for key, definition in SETTING_DEFINITIONS.items():
        if key in rows:
            continue
        db.add(Setting(key=key, value=_serialize(definition, definition.default), type=definition.type))
        created += 1
    db.flush()
    return created
