"""
Donation intake: validate the request, hand it to the provider adapter for
the chosen method and store the resulting record.

There is no transactional link between the provider call and the database
write. If the insert fails after a provider call succeeded, the provider side
is left as is and the caller sees a 500.
"""
from typing import Any, Dict, List, Optional
import logging
import math

from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from . import donation_models, donation_schemas
from .database import Database
from .errors import PersistenceError, ValidationError
from .providers import PaymentMethod, PaymentProvider

logger = logging.getLogger(__name__)


def parse_amount(amount: Any) -> float:
    if isinstance(amount, bool):
        raise ValidationError('Amount must be a positive number')
    try:
        value = float(amount)
    except (TypeError, ValueError):
        raise ValidationError('Amount must be a positive number') from None
    if not math.isfinite(value) or value <= 0:
        raise ValidationError('Amount must be a positive number')
    return value


class DonationService:
    def __init__(self, db: Database, providers: Dict[PaymentMethod, PaymentProvider]):
        self.db = db
        self.providers = providers

    async def submit_donation(
        self,
        name: Any,
        amount: Any,
        method: Any,
        payment_method_data: Optional[dict] = None,
    ) -> dict:
        if not name or not amount or not method:
            raise ValidationError()
        if not isinstance(method, str):
            raise ValidationError('Method must be a string')
        if not isinstance(name, str):
            raise ValidationError('Name must be a string')
        if not name.strip():
            raise ValidationError()

        payment_method = PaymentMethod.parse(method)
        value = parse_amount(amount)

        provider = self.providers[payment_method]
        result = await provider.initiate(name, value, payment_method_data)

        donation = await run_in_threadpool(
            self._create_record, name, value, payment_method.value, result.reference
        )
        logger.info('Donation %s created via %s (reference %s)', donation['id'], payment_method.value, result.reference)

        response = {'success': True, 'provider': payment_method.value}
        response.update(result.fields)
        response['donation'] = donation
        return response

    async def list_donations(self) -> List[dict]:
        return await run_in_threadpool(self._fetch_all)

    def _create_record(self, name: str, amount: float, method: str, reference: str) -> dict:
        session = self.db.session()
        try:
            d = donation_models.Donation(name=name, amount=amount, method=method, reference=reference)
            session.add(d)
            session.commit()
            session.refresh(d)
            return donation_schemas.serialize(d)
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(f'Failed to store donation ({method}, {reference}): {e}') from e
        finally:
            session.close()

    def _fetch_all(self) -> List[dict]:
        session = self.db.session()
        try:
            items = session.query(donation_models.Donation).order_by(
                donation_models.Donation.created_at.desc(),
                donation_models.Donation.id.desc(),
            ).all()
            return [donation_schemas.serialize(d) for d in items]
        except SQLAlchemyError as e:
            raise PersistenceError(f'Failed to list donations: {e}') from e
        finally:
            session.close()
