"""
Demo routes that fail on purpose.

Each handler logs its input model through the structured redactor and then
raises, so the fault boundary's log entry and response can be inspected.
"""

import logging

from fastapi import APIRouter, File, Form, UploadFile

from models.demo_models import (
    FileUploadModel,
    MixedDataTest,
    MultipleFilesModel,
    RealResponse,
    SingleFieldTest,
    TestDto,
    UserCredentials,
    UserProfile,
)

demo_router = APIRouter()
logger = logging.getLogger('scrubgate.gateway')

"""
Endpoint

Request:
{"username": "test_user", "password": "...", "api_key": "...", "display_name": "..."}
Response:
{"status": 500, "title": "Server error"}
"""


@demo_router.post('/test-default', description='Fail with built-in sensitive fields in the body')
async def test_default(creds: UserCredentials):
    logger.info('Received credentials: %s', creds)
    raise RuntimeError('Test exception: default sensitive fields')


@demo_router.post('/test-attribute', description='Fail with marker-ignored fields in the body')
async def test_attribute(dto: TestDto):
    logger.info('Received dto: %s', dto)
    raise RuntimeError('Test exception: marker-ignored fields')


@demo_router.post('/test-complex', description='Fail with a nested object graph in the body')
async def test_complex(profile: UserProfile):
    logger.info('Received profile: %s', profile)
    raise RuntimeError('Test exception: nested objects')


@demo_router.post('/test-real', description='Fail with a partially ignored model')
async def test_real(response: RealResponse):
    logger.info('Received model: %s', response)
    raise RuntimeError('Test exception: RealResponse model')


@demo_router.post('/test-mixed', description='Fail with ignored fields of several JSON types')
async def test_mixed(data: MixedDataTest):
    logger.info('Received mixed data: %s', data)
    raise RuntimeError('Test exception: mixed value types')


@demo_router.post('/test-single', description='Fail with a body whose only field is ignored')
async def test_single(data: SingleFieldTest):
    logger.info('Received single field: %s', data)
    raise RuntimeError('Test exception: single ignored field')


@demo_router.post('/upload-file', description='Fail while handling a single file upload')
async def upload_file(
    description: str | None = Form('File description'),
    is_public: bool = Form(True),
    category: str | None = Form('Documents'),
    secret_data: str | None = Form(None),
    file: UploadFile | None = File(None),
):
    model = FileUploadModel(
        description=description, file=file, is_public=is_public,
        category=category, secret_data=secret_data,
    )
    logger.info('Received upload: %s', model)
    if file is None:
        raise RuntimeError('No file was provided')
    size = len(await file.read())
    raise RuntimeError(f'Test exception during file upload. File size: {size} bytes')


@demo_router.post('/upload-multiple', description='Fail while handling several file uploads')
async def upload_multiple(
    batch_name: str | None = Form('File batch'),
    category: str | None = Form('Documents'),
    files: list[UploadFile] | None = File(None),
):
    model = MultipleFilesModel(batch_name=batch_name, files=files or [], category=category)
    logger.info('Received batch: %s', model)
    if not files:
        raise RuntimeError('No files were provided')
    total = 0
    for upload in files:
        total += len(await upload.read())
    raise RuntimeError(f'Test exception during multiple file upload. Total size: {total} bytes')
