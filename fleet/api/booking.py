from datetime import date, datetime, time
from io import BytesIO
from fastapi import APIRouter, Depends, status, Form, UploadFile, File
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field
from pydantic_extra_types.phone_numbers import PhoneNumber

from fleet.api.preorder import PreorderSchema
from fleet.src.constants import MAX_PAYMENT_PROOF_SIZE, PAYMENT_PROOFS
from fleet.src.db import PaymentProof, Preorder, Route, sessionMaker
from fleet.src import exceptions, validators, getters
from fleet.src.enums import PreorderStatus
from fleet.src.loggers import logEvent
from fleet.src.minio import uploadFile
from fleet.src.functions import makeExceptionResponses, paymentProofURL
from fleet.src.urls import URL_BOOKING, URL_BOOKING_PAYMENT_PROOF

route_public = APIRouter()


## Output Schema
class PaymentProofSchema(BaseModel):
    id: int
    file_name: str
    file_type: str
    file_size: int
    created_on: datetime


## Input Forms
class ProofForm(BaseModel):
    file: UploadFile = Field(File())


class BookingForm(BaseModel):
    customer_name: str = Field(Form(min_length=1, max_length=64, pattern=r"\S"))
    customer_phone: PhoneNumber = Field(
        Form(max_length=32, description="Phone number in RFC3966 format")
    )
    customer_address: str | None = Field(Form(max_length=512, default=None))
    route_id: int = Field(Form())
    scheduled_date: date = Field(Form())
    scheduled_time: time = Field(Form())
    notes: str | None = Field(Form(max_length=2048, default=None))
    payment_proof_id: int = Field(Form())


## API endpoints [Public]
@route_public.post(
    URL_BOOKING_PAYMENT_PROOF,
    tags=["Booking"],
    response_model=PaymentProofSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [exceptions.InvalidImageFile, exceptions.FileTooLarge]
    ),
    description="""
    Uploads the payment proof image of a booking, the first step of a public booking.
    Accepts PNG, JPEG, WebP or GIF images up to MAX_PAYMENT_PROOF_SIZE bytes (5 MB).
    The image type is detected from the file content, not the request headers.
    Stores the image in the `payment-proofs` bucket and returns its id,
    which must be passed as `payment_proof_id` when placing the booking.
    """,
)
async def upload_payment_proof(
    fParam: ProofForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        fileBytes = await fParam.file.read()
        mimeType = validators.imageFile(fileBytes, MAX_PAYMENT_PROOF_SIZE)

        proof = PaymentProof(
            file_name=fParam.file.filename,
            file_type=mimeType,
            file_size=len(fileBytes),
        )
        session.add(proof)
        session.flush()
        uploadFile(
            PAYMENT_PROOFS,
            str(proof.id),
            len(fileBytes),
            BytesIO(fileBytes),
            mimeType,
        )
        session.commit()
        session.refresh(proof)

        proofData = jsonable_encoder(proof)
        logEvent(None, request_info, proofData)
        return proofData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_public.post(
    URL_BOOKING,
    tags=["Booking"],
    response_model=PreorderSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses([exceptions.UnknownValue]),
    description="""
    Places a booking from the public booking page.
    The customer name, phone, route, scheduled date and time are required,
    as is the id of a payment proof uploaded beforehand.
    Creates a PENDING preorder whose `payment_proof_url` points at the proof.
    """,
)
async def create_booking(
    fParam: BookingForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        proof = (
            session.query(PaymentProof)
            .filter(PaymentProof.id == fParam.payment_proof_id)
            .first()
        )
        if proof is None:
            raise exceptions.UnknownValue("payment_proof_id")
        route = session.query(Route.id).filter(Route.id == fParam.route_id).first()
        if route is None:
            raise exceptions.UnknownValue(Preorder.route_id)

        preorder = Preorder(
            customer_name=fParam.customer_name.strip(),
            customer_phone=fParam.customer_phone,
            customer_address=fParam.customer_address,
            route_id=fParam.route_id,
            scheduled_date=fParam.scheduled_date,
            scheduled_time=fParam.scheduled_time,
            notes=fParam.notes,
            status=PreorderStatus.PENDING,
            payment_proof_url=paymentProofURL(proof.id),
        )
        session.add(preorder)
        session.commit()
        session.refresh(preorder)

        preorderData = jsonable_encoder(preorder)
        logEvent(None, request_info, preorderData)
        return preorderData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
