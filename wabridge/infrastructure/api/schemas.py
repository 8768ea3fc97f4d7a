"""Request bodies for the HTTP API.

Field names follow the JSON the bot front end has always sent
(``groupNumber``, ``newName``...). Every field is optional at the schema
level; the routes check presence themselves so missing fields produce the
API's usual 400 messages instead of FastAPI's 422 payload.
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ApiRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class LoginRequest(ApiRequest):
    number: Optional[Union[str, int]] = None


class GroupSettingsRequest(ApiRequest):
    setting: Optional[str] = None
    action: Optional[str] = None
    target: Optional[Any] = None


class RenameRequest(ApiRequest):
    group_number: Optional[int] = Field(None, alias="groupNumber")
    new_name: Optional[str] = Field(None, alias="newName")


class DescriptionRequest(ApiRequest):
    group_number: Optional[int] = Field(None, alias="groupNumber")
    description: Optional[str] = None


class PictureRequest(ApiRequest):
    group_number: Optional[int] = Field(None, alias="groupNumber")
    file_url: Optional[str] = Field(None, alias="fileUrl")
    image_base64: Optional[str] = Field(None, alias="imageBase64")
    action: Optional[str] = None


class InviteRequest(ApiRequest):
    group_number: Optional[int] = Field(None, alias="groupNumber")
    number: Optional[Union[str, int]] = None
