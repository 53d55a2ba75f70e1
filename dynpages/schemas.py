from typing import Annotated, Any, Literal, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints, field_validator
from .services.slug import is_valid_slug

PASSWORD_MIN = 8
PASSWORD_MAX = 100

TitleStr = Annotated[str, StringConstraints(min_length=1, max_length=200, strip_whitespace=True)]
NameStr = Annotated[str, StringConstraints(min_length=1, max_length=200, strip_whitespace=True)]
UrlStr = Annotated[str, StringConstraints(min_length=1, strip_whitespace=True)]


class SignUpBody(BaseModel):
    email: EmailStr
    password: str = Field(min_length=PASSWORD_MIN, max_length=PASSWORD_MAX)

    @field_validator('email', mode='before')
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class SignInBody(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator('email', mode='before')
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class PageContent(BaseModel):
    model_config = ConfigDict(extra='allow')
    blocks: list[Any]
    time: Optional[float] = None
    version: Optional[str] = None


class CreatePageBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    title: TitleStr
    slug: Optional[str] = None
    content: Optional[PageContent] = None
    is_published: bool = Field(False, alias='isPublished')
    qr_expiry_minutes: Optional[int] = Field(None, alias='qrExpiryMinutes', gt=0)

    @field_validator('slug')
    @classmethod
    def check_slug_format(cls, v):
        if v is not None and not is_valid_slug(v):
            raise ValueError('Invalid slug format')
        return v


class UpdatePageBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    title: Optional[TitleStr] = None
    content: Optional[PageContent] = None
    is_published: Optional[bool] = Field(None, alias='isPublished')
    qr_expiry_minutes: Optional[int] = Field(None, alias='qrExpiryMinutes', gt=0)


class CreateEndpointBody(BaseModel):
    name: NameStr
    url: UrlStr
    description: Optional[str] = None


class UpdateEndpointBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    name: Optional[NameStr] = None
    url: Optional[UrlStr] = None
    description: Optional[str] = None
    is_active: Optional[bool] = Field(None, alias='isActive')


class TriggerBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    webhook_id: Any = Field(None, alias='webhookId')
    webhook_url: Optional[str] = Field(None, alias='webhookUrl')
    payload: Any = None
    page_slug: Optional[str] = Field(None, alias='pageSlug')
    access_token: Optional[str] = Field(None, alias='accessToken')


class QrGenerateBody(BaseModel):
    text: Annotated[str, StringConstraints(min_length=1)]
    format: Literal['dataurl', 'buffer'] = 'dataurl'
