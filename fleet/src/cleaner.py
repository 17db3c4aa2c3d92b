import datetime, logging
from fleet.src.db import sessionMaker, AccessToken, PaymentProof, Preorder
from fleet.src.constants import PAYMENT_PROOFS, ORPHAN_PROOF_MAX_AGE
from fleet.src.functions import paymentProofURL
from fleet.src.minio import deleteFile
from sqlalchemy.orm import Session
from sqlalchemy import delete

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("Cleaner")


def removeExpiredTokens(session: Session) -> int:
    currentTime = datetime.datetime.now(datetime.timezone.utc)
    result = session.execute(
        delete(AccessToken).where(AccessToken.expires_at < currentTime)
    )
    session.commit()
    deletedCount = result.rowcount
    logger.info(f"Removed {deletedCount} tokens from {AccessToken.__tablename__} table")
    return deletedCount


def removeOrphanPaymentProofs(
    session: Session, maxAge: int = ORPHAN_PROOF_MAX_AGE
) -> int:
    """
    Remove payment proofs that were uploaded but never attached to a booking.

    Only proofs older than `maxAge` seconds are considered, so that a customer
    still filling the booking form keeps the proof.
    """
    cutoff = datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(
        seconds=maxAge
    )
    usedURLs = {
        url
        for (url,) in session.query(Preorder.payment_proof_url).filter(
            Preorder.payment_proof_url.isnot(None)
        )
    }
    proofs = session.query(PaymentProof).filter(PaymentProof.created_on < cutoff).all()

    deletedCount = 0
    for proof in proofs:
        if paymentProofURL(proof.id) in usedURLs:
            continue
        deleteFile(PAYMENT_PROOFS, str(proof.id))
        session.delete(proof)
        deletedCount += 1
    session.commit()
    logger.info(
        f"Removed {deletedCount} proofs from {PaymentProof.__tablename__} table"
    )
    return deletedCount


def main():
    try:
        with sessionMaker() as session:
            removeExpiredTokens(session)
            removeOrphanPaymentProofs(session)
    except Exception:
        logger.exception("cleaner.py failed")


if __name__ == "__main__":
    main()
