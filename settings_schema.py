from pydantic import BaseModel, ValidationError, field_validator

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class SettingsSchema(BaseModel):
    db_path: str = "ironvault.db"
    export_dir: str = "."
    backup_filename: str = "iron_vault_backup.json"
    log_level: str = "WARNING"

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return level


def validate_settings(data: dict) -> SettingsSchema:
    try:
        return SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
