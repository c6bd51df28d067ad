from pydantic import BaseModel


class SettingUpdate(BaseModel):
    key: str
    value: str


class SettingsResponse(BaseModel):
    configs: dict[str, str]


class SettingUpdateResponse(BaseModel):
    success: bool
    key: str
