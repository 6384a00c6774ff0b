from typing import Annotated, Any

from pydantic import Field

from utils.sensitivity_util import LogIgnore, SensitiveModel, log_ignored


class UserCredentials(SensitiveModel):
    """No markers: password and api_key are caught by the built-in rules."""

    username: str = Field('test_user')
    password: str = Field('secret-password')
    api_key: str = Field('api_key_123456')
    display_name: str = Field('Test user')


class UserSettings(SensitiveModel):
    theme: str | None = Field(None)
    language: str | None = Field(None)
    notifications_enabled: bool = Field(False)
    secret_token: str | None = Field(None)


class UserProfile(SensitiveModel):
    id: int = Field(123)
    name: str = Field('Test user')
    email: str = Field('user@example.com')
    credentials: Annotated[UserCredentials, LogIgnore()] = Field(default_factory=UserCredentials)
    settings: UserSettings = Field(
        default_factory=lambda: UserSettings(
            theme='dark', language='en', notifications_enabled=True, secret_token='notify_token_12345'
        )
    )


class RealResponse(SensitiveModel):
    title: str | None = Field(None)
    email: str | None = log_ignored(None)


class MixedDataTest(SensitiveModel):
    public_info: str = Field('Public information')
    secret_number: str | None = log_ignored(None)
    secret_codes: list[str] = log_ignored(default_factory=lambda: ['code1', 'code2'])
    public_tags: list[str] = Field(default_factory=lambda: ['tag1', 'tag2'])
    secret_dict: dict[str, str] = log_ignored(default_factory=lambda: {'key1': 'value1', 'key2': 'value2'})


class SingleFieldTest(SensitiveModel):
    only_secret: str = log_ignored('This should be removed completely')


class TestDto(SensitiveModel):
    __test__ = False

    password: Annotated[str, LogIgnore()] = Field('sensitive-data')
    name: str = Field('User name')


class FileUploadModel(SensitiveModel):
    description: str | None = Field('File description')
    file: Any = log_ignored(None)
    is_public: bool = Field(True)
    category: str | None = Field('Documents')
    secret_data: str | None = log_ignored('Confidential data')


class MultipleFilesModel(SensitiveModel):
    batch_name: str | None = Field('File batch')
    files: list[Any] = log_ignored(default_factory=list)
    category: str | None = Field('Documents')
