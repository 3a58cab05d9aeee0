"""FastAPI dependency providers for the service objects; tests override the leaf providers."""
from typing import List

from fastapi import Depends
from sqlalchemy.orm import Session

from docreach.db.database import get_db
from docreach.services.availability import AvailabilityStore
from docreach.services.dispatch import DispatchRouter, default_handlers
from docreach.services.documents import LocalDocumentStore, get_document_store
from docreach.services.matching import MatchRanker
from docreach.services.notifications import EmailMessageChannel, get_message_channel
from docreach.services.validators import VerificationCheck, get_verification_checks
from docreach.services.verification import EligibilityEngine


def get_eligibility_engine(
    db: Session = Depends(get_db),
    store: LocalDocumentStore = Depends(get_document_store),
    checks: List[VerificationCheck] = Depends(get_verification_checks),
) -> EligibilityEngine:
    return EligibilityEngine(db, store=store, checks=checks)


def get_match_ranker(db: Session = Depends(get_db)) -> MatchRanker:
    return MatchRanker(db)


def get_availability_store(db: Session = Depends(get_db)) -> AvailabilityStore:
    return AvailabilityStore(db)


def get_dispatch_router(
    db: Session = Depends(get_db),
    channel: EmailMessageChannel = Depends(get_message_channel),
) -> DispatchRouter:
    return DispatchRouter(db, handlers=default_handlers(channel))
