from datetime import datetime
from enum import IntEnum
from io import BytesIO
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status, Form, UploadFile, File
from fastapi.encoders import jsonable_encoder
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm.session import Session

from fleet.api.bearer import bearer_staff
from fleet.src.constants import MAX_QR_CODE_SIZE, PAYMENT_QR_CODES
from fleet.src.db import PaymentMethod, sessionMaker
from fleet.src import exceptions, validators, getters
from fleet.src.loggers import logEvent
from fleet.src.minio import deleteFile, downloadFile, uploadFile
from fleet.src.functions import (
    enumStr,
    imageMIME,
    makeExceptionResponses,
    resizeImage,
    updateIfChanged,
)
from fleet.src.urls import (
    URL_PAYMENT_METHOD,
    URL_PAYMENT_METHOD_QR_CODE,
    URL_PUBLIC_PAYMENT_METHOD,
    URL_PUBLIC_QR_CODE,
)

route_staff = APIRouter()
route_public = APIRouter()


## Output Schema
class PaymentMethodSchema(BaseModel):
    id: int
    name: str
    account_name: Optional[str]
    account_number: Optional[str]
    qr_code_url: Optional[str]
    is_active: bool
    updated_on: Optional[datetime]
    created_on: datetime


class PublicPaymentMethodSchema(BaseModel):
    id: int
    name: str
    account_name: Optional[str]
    account_number: Optional[str]
    qr_code_url: Optional[str]


## Input Forms
class CreateForm(BaseModel):
    name: str = Field(Form(min_length=1, max_length=64))
    account_name: str | None = Field(Form(max_length=64, default=None))
    account_number: str | None = Field(Form(max_length=64, default=None))
    is_active: bool = Field(Form(default=True))


class UpdateForm(BaseModel):
    id: int = Field(Form())
    name: str | None = Field(Form(min_length=1, max_length=64, default=None))
    account_name: str | None = Field(Form(max_length=64, default=None))
    account_number: str | None = Field(Form(max_length=64, default=None))
    is_active: bool | None = Field(Form(default=None))


class QRCodeForm(BaseModel):
    id: int = Field(Form())
    file: UploadFile = Field(File())


class DeleteForm(BaseModel):
    id: int = Field(Form())


## Query Parameters
class OrderIn(IntEnum):
    ASC = 1
    DESC = 2


class OrderBy(IntEnum):
    id = 1
    name = 2
    updated_on = 3
    created_on = 4


class QueryParams(BaseModel):
    name: str | None = Field(Query(default=None))
    is_active: bool | None = Field(Query(default=None))
    # id based
    id: int | None = Field(Query(default=None))
    id_ge: int | None = Field(Query(default=None))
    id_le: int | None = Field(Query(default=None))
    id_list: List[int] | None = Field(Query(default=None))
    # created_on based
    created_on_ge: datetime | None = Field(Query(default=None))
    created_on_le: datetime | None = Field(Query(default=None))
    # Ordering
    order_by: OrderBy = Field(
        Query(default=OrderBy.created_on, description=enumStr(OrderBy))
    )
    order_in: OrderIn = Field(Query(default=OrderIn.DESC, description=enumStr(OrderIn)))
    # Pagination
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=20, gt=0, le=100))


class ImageQueryParams(BaseModel):
    id: int
    width: int | None = Field(Query(default=None, ge=16, le=2048))
    height: int | None = Field(Query(default=None, ge=16, le=2048))


## Function
def qrCodeURL(methodID: int) -> str:
    """Public download path of the QR code of a payment method."""
    return f"/public{URL_PUBLIC_QR_CODE}/{methodID}"


def searchPaymentMethod(session: Session, qParam: QueryParams) -> List[PaymentMethod]:
    query = session.query(PaymentMethod)

    # Filters
    if qParam.name is not None:
        query = query.filter(PaymentMethod.name.ilike(f"%{qParam.name}%"))
    if qParam.is_active is not None:
        query = query.filter(PaymentMethod.is_active == qParam.is_active)
    # id based
    if qParam.id is not None:
        query = query.filter(PaymentMethod.id == qParam.id)
    if qParam.id_ge is not None:
        query = query.filter(PaymentMethod.id >= qParam.id_ge)
    if qParam.id_le is not None:
        query = query.filter(PaymentMethod.id <= qParam.id_le)
    if qParam.id_list is not None:
        query = query.filter(PaymentMethod.id.in_(qParam.id_list))
    # created_on based
    if qParam.created_on_ge is not None:
        query = query.filter(PaymentMethod.created_on >= qParam.created_on_ge)
    if qParam.created_on_le is not None:
        query = query.filter(PaymentMethod.created_on <= qParam.created_on_le)

    # Ordering
    orderingAttribute = getattr(PaymentMethod, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc(), PaymentMethod.id.asc())
    else:
        query = query.order_by(orderingAttribute.desc(), PaymentMethod.id.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


## API endpoints [Staff]
@route_staff.post(
    URL_PAYMENT_METHOD,
    tags=["Payment Method"],
    response_model=PaymentMethodSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses([exceptions.InvalidToken, exceptions.NoPermission]),
    description="""
    Adds a payment method shown on the public booking page.
    Only administrators can add payment methods.
    The QR code image is uploaded separately.
    """,
)
async def create_payment_method(
    fParam: CreateForm = Depends(),
    bearer=Depends(bearer_staff),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.staffToken(bearer.credentials, session)
        role = getters.userRole(token, session)
        validators.adminPermission(role)

        method = PaymentMethod(
            name=fParam.name,
            account_name=fParam.account_name,
            account_number=fParam.account_number,
            is_active=fParam.is_active,
        )
        session.add(method)
        session.commit()
        session.refresh(method)

        methodData = jsonable_encoder(method)
        logEvent(token, request_info, methodData)
        return methodData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.patch(
    URL_PAYMENT_METHOD,
    tags=["Payment Method"],
    response_model=PaymentMethodSchema,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.NoPermission, exceptions.InvalidIdentifier]
    ),
    description="""
    Updates a payment method, including turning it on or off.
    Only administrators can update payment methods.
    """,
)
async def update_payment_method(
    fParam: UpdateForm = Depends(),
    bearer=Depends(bearer_staff),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.staffToken(bearer.credentials, session)
        role = getters.userRole(token, session)
        validators.adminPermission(role)

        method = session.query(PaymentMethod).filter(PaymentMethod.id == fParam.id).first()
        if method is None:
            raise exceptions.InvalidIdentifier()

        updateIfChanged(
            method,
            fParam,
            [
                PaymentMethod.name.key,
                PaymentMethod.account_name.key,
                PaymentMethod.account_number.key,
                PaymentMethod.is_active.key,
            ],
        )
        haveUpdates = session.is_modified(method)
        if haveUpdates:
            session.commit()
            session.refresh(method)

        methodData = jsonable_encoder(method)
        if haveUpdates:
            logEvent(token, request_info, methodData)
        return methodData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.post(
    URL_PAYMENT_METHOD_QR_CODE,
    tags=["Payment Method"],
    response_model=PaymentMethodSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.NoPermission,
            exceptions.InvalidIdentifier,
            exceptions.InvalidImageFile,
            exceptions.FileTooLarge,
        ]
    ),
    description="""
    Uploads (or replaces) the QR code image of a payment method.
    Only administrators can upload QR codes.
    Accepts PNG, JPEG, WebP or GIF images up to MAX_QR_CODE_SIZE bytes (2 MB).
    Stores the image in the `payment-qr-codes` bucket and points `qr_code_url`
    at its public download path.
    """,
)
async def upload_qr_code(
    fParam: QRCodeForm = Depends(),
    bearer=Depends(bearer_staff),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.staffToken(bearer.credentials, session)
        role = getters.userRole(token, session)
        validators.adminPermission(role)

        method = session.query(PaymentMethod).filter(PaymentMethod.id == fParam.id).first()
        if method is None:
            raise exceptions.InvalidIdentifier()
        fileBytes = await fParam.file.read()
        mimeType = validators.imageFile(fileBytes, MAX_QR_CODE_SIZE)

        uploadFile(
            PAYMENT_QR_CODES,
            str(method.id),
            len(fileBytes),
            BytesIO(fileBytes),
            mimeType,
        )
        method.qr_code_url = qrCodeURL(method.id)
        session.commit()
        session.refresh(method)

        methodData = jsonable_encoder(method)
        logEvent(token, request_info, methodData)
        return methodData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.delete(
    URL_PAYMENT_METHOD,
    tags=["Payment Method"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=makeExceptionResponses([exceptions.InvalidToken, exceptions.NoPermission]),
    description="""
    Deletes a payment method together with its QR code image.
    Only administrators can delete payment methods.
    """,
)
async def delete_payment_method(
    fParam: DeleteForm = Depends(),
    bearer=Depends(bearer_staff),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.staffToken(bearer.credentials, session)
        role = getters.userRole(token, session)
        validators.adminPermission(role)

        method = session.query(PaymentMethod).filter(PaymentMethod.id == fParam.id).first()
        if method is not None:
            session.delete(method)
            session.commit()
            if method.qr_code_url is not None:
                deleteFile(PAYMENT_QR_CODES, str(method.id))
            logEvent(token, request_info, jsonable_encoder(method))
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.get(
    URL_PAYMENT_METHOD,
    tags=["Payment Method"],
    response_model=List[PaymentMethodSchema],
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Fetches every payment method, active or not.
    Requires a valid staff token.
    """,
)
async def fetch_payment_methods(
    qParam: QueryParams = Depends(), bearer=Depends(bearer_staff)
):
    try:
        session = sessionMaker()
        validators.staffToken(bearer.credentials, session)

        return searchPaymentMethod(session, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


## API endpoints [Public]
@route_public.get(
    URL_PUBLIC_PAYMENT_METHOD,
    tags=["Payment Method"],
    response_model=List[PublicPaymentMethodSchema],
    description="""
    Lists the active payment methods for the public booking page.
    """,
)
async def fetch_public_payment_methods(qParam: QueryParams = Depends()):
    try:
        session = sessionMaker()
        qParam.is_active = True
        return searchPaymentMethod(session, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_public.get(
    f"{URL_PUBLIC_QR_CODE}" + "/{id}",
    tags=["Payment Method"],
    responses=makeExceptionResponses([exceptions.InvalidIdentifier]),
    description="""
    Downloads the QR code image of an active payment method.
    Optionally resized to fit inside `width` x `height`, keeping the aspect ratio.
    """,
)
async def download_qr_code(qParam: ImageQueryParams = Depends()):
    try:
        session = sessionMaker()
        method = (
            session.query(PaymentMethod)
            .filter(
                PaymentMethod.id == qParam.id,
                PaymentMethod.is_active == True,
                PaymentMethod.qr_code_url != None,
            )
            .first()
        )
        if method is None:
            raise exceptions.InvalidIdentifier()

        fileBytes = downloadFile(PAYMENT_QR_CODES, str(method.id))
        mimeType = imageMIME(fileBytes)
        if qParam.width is not None or qParam.height is not None:
            fileBytes = resizeImage(
                fileBytes,
                width=qParam.width,
                height=qParam.height,
            )
        return StreamingResponse(
            BytesIO(fileBytes),
            media_type=mimeType,
            headers={"Cache-Control": "public, max-age=3600"},
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
