"""
Catalog store: the single owner of products, submissions, offers and
offer/discount announcements.

Every mutating operation is validated up front and then run through the
MutationQueue, so operations complete one at a time in call order. Each
collection is mirrored as a JSON array under its own key in a LocalStore.
The in-memory collections are authoritative for the session; the mirror is
only read back by ``load()``.

Products are kept locally only; this store never talks to the HTTP facade.
"""

import functools
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, TypeAdapter, ValidationError

import image_codec
from config import Settings, settings as default_settings
from errors import InvalidTransitionError, NotApprovedError, QuotaExceededError, StorageWriteError
from mutation_queue import MutationQueue
from notifications import Audience, NativeNotifier, NotificationCenter, NotificationSink, Severity
from quota_recovery import QuotaRecoveryPipeline
from schemas import (
    ALL_CATEGORIES,
    CATEGORIES,
    SEED_PRODUCTS,
    AntiqueSubmission,
    DiscountStatus,
    Offer,
    OfferCreate,
    OfferDiscount,
    OfferDiscountCreate,
    Product,
    ProductCreate,
    ReviewStatus,
    SubmissionCreate,
)
from storage import LocalStore, StorageArea
from transitions import ADDED_TO_SHOP, EntityKind, TransitionMessage, can_transition, format_amount, message_for

logger = logging.getLogger(__name__)

PRODUCTS_KEY = "products"
SUBMISSIONS_KEY = "antiqueSubmissions"
OFFERS_KEY = "offers"
OFFER_DISCOUNTS_KEY = "offersDiscounts"

NATIVE_TITLE = "Antique Shop"
MISSING_PRODUCT_TITLE = "an item no longer listed"

M = TypeVar("M", bound=BaseModel)
Fields = Union[Dict[str, Any], BaseModel]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _coerce(model: Type[M], fields: Fields) -> M:
    if isinstance(fields, model):
        return fields
    if isinstance(fields, BaseModel):
        fields = fields.model_dump()
    return model.model_validate(fields)


def _find(items: Iterable[M], entity_id: str) -> Optional[M]:
    return next((item for item in items if item.id == entity_id), None)


def _replace(items: Iterable[M], updated: M) -> List[M]:
    return [updated if item.id == updated.id else item for item in items]


def _without(items: Iterable[M], entity_id: str) -> List[M]:
    return [item for item in items if item.id != entity_id]


class IdGenerator:
    """Millisecond timestamps as ids, bumped so they never repeat or go backwards."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._last = 0

    def observe(self, ids: Iterable[str]) -> None:
        for value in ids:
            if value.isdigit():
                self._last = max(self._last, int(value))

    def __call__(self) -> str:
        self._last = max(int(self._clock() * 1000), self._last + 1)
        return str(self._last)


class _Collection(Generic[M]):
    def __init__(self, key: str, model: Type[M]):
        self.key = key
        self.model = model
        self.adapter = TypeAdapter(List[model])
        self.items: List[M] = []

    def dump(self, items: List[M]) -> str:
        return self.adapter.dump_json(items).decode("utf-8")

    def parse(self, raw: str) -> List[M]:
        return self.adapter.validate_json(raw)


class CatalogStore:
    def __init__(
        self,
        store: LocalStore,
        sink: NotificationSink,
        native_notifier: Optional[NativeNotifier] = None,
        settings: Settings = default_settings,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Optional[IdGenerator] = None,
    ):
        self.store = store
        self.sink = sink
        self.native_notifier = native_notifier
        self.settings = settings
        self.clock = clock
        self._new_id = id_factory or IdGenerator()
        self._queue = MutationQueue()
        self._unsubscribe: List[Callable[[], None]] = []

        self._products: _Collection[Product] = _Collection(PRODUCTS_KEY, Product)
        self._submissions: _Collection[AntiqueSubmission] = _Collection(SUBMISSIONS_KEY, AntiqueSubmission)
        self._offers: _Collection[Offer] = _Collection(OFFERS_KEY, Offer)
        self._offer_discounts: _Collection[OfferDiscount] = _Collection(OFFER_DISCOUNTS_KEY, OfferDiscount)

        self._codec_options = {
            "max_width": settings.image_max_width,
            "max_height": settings.image_max_height,
            "quality": settings.image_quality,
        }
        self._recovery = QuotaRecoveryPipeline(
            attempt=functools.partial(self._try_write, self._submissions),
            compressor=functools.partial(image_codec.compress, **self._codec_options),
            clock=self.clock,
            retention_days=settings.retention_days,
            max_items=settings.recovery_max_items,
            max_description_length=settings.max_description_length,
        )

    @property
    def _collections(self) -> Tuple[_Collection, ...]:
        return (self._products, self._submissions, self._offers, self._offer_discounts)

    # ---------------
    # Lifecycle
    # ---------------

    def load(self) -> None:
        """Rehydrate every collection from the store and follow external changes."""
        for col in self._collections:
            raw = self.store.read(col.key)
            if raw is None:
                col.items = []
                if col is self._products:
                    self._commit(col, [Product(**p) for p in SEED_PRODUCTS])
            else:
                try:
                    col.items = col.parse(raw)
                except ValidationError as e:
                    logger.warning("Discarding unreadable '%s' mirror: %s", col.key, e)
                    col.items = []
            self._new_id.observe(item.id for item in col.items)
            self._unsubscribe.append(
                self.store.on_external_change(col.key, functools.partial(self._apply_external, col))
            )

    def close(self) -> None:
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe.clear()

    async def join(self) -> None:
        await self._queue.join()

    def _apply_external(self, col: _Collection, raw: Optional[str]) -> None:
        # Another context wrote this key: last writer wins.
        if raw is None:
            col.items = []
            return
        try:
            col.items = col.parse(raw)
        except ValidationError as e:
            logger.warning("Ignoring unreadable external update of '%s': %s", col.key, e)
            return
        self._new_id.observe(item.id for item in col.items)

    # ---------------
    # Persistence
    # ---------------

    def _try_write(self, col: _Collection, items: List[Any]) -> bool:
        try:
            self.store.write(col.key, col.dump(items))
        except QuotaExceededError:
            return False
        return True

    def _commit(self, col: _Collection, items: List[Any]) -> None:
        col.items = list(items)
        try:
            self._persist(col)
        except StorageWriteError as exc:
            logger.error("Could not persist '%s', keeping the in-memory copy: %s", col.key, exc)

    def _persist(self, col: _Collection) -> None:
        try:
            self.store.write(col.key, col.dump(col.items))
            return
        except QuotaExceededError as exc:
            if col is not self._submissions:
                logger.error("Could not persist '%s', keeping the in-memory copy: %s", col.key, exc)
                return
            logger.warning("Submissions exceed storage quota (%s); starting recovery", exc)

        result = self._recovery.run(col.items)
        if result.persisted:
            col.items = result.items
        else:
            logger.error("Submissions are no longer persisted; %d kept for this session", len(col.items))

    # ---------------
    # Notifications
    # ---------------

    def _notify(self, message: str, severity: Severity, audience: Audience) -> None:
        self.sink.notify(message, severity, audience)
        if self.native_notifier is None:
            return
        try:
            self.native_notifier(NATIVE_TITLE, message)
        except Exception as e:
            logger.warning("Native notification failed: %s", e)

    def _announce(self, template: TransitionMessage, **context: Any) -> None:
        self._notify(template.admin.format(**context), template.admin_severity, Audience.ADMIN)
        self._notify(template.user.format(**context), template.user_severity, Audience.USER)

    def _announce_review(self, kind: EntityKind, entity: Union[AntiqueSubmission, Offer]) -> None:
        template = message_for(kind, entity.status)
        if kind is EntityKind.SUBMISSION:
            self._announce(template, title=entity.title)
            return
        product = self.get_product(entity.product_id)
        self._announce(
            template,
            title=product.title if product else MISSING_PRODUCT_TITLE,
            amount=format_amount(entity.amount),
            name=entity.name,
        )

    def _apply_review_update(self, kind: EntityKind, col: _Collection, updated: Any) -> Optional[Any]:
        current = _find(col.items, updated.id)
        if current is None:
            return None
        changed = current.status != updated.status
        if changed and not can_transition(current.status, updated.status):
            raise InvalidTransitionError(kind.value, updated.id, current.status.value, updated.status.value)
        self._commit(col, _replace(col.items, updated))
        if changed:
            self._announce_review(kind, updated)
        return updated

    def _set_review_status(self, kind: EntityKind, col: _Collection, entity_id: str, status: ReviewStatus):
        def mutation():
            current = _find(col.items, entity_id)
            if current is None:
                return None
            return self._apply_review_update(kind, col, current.model_copy(update={"status": status}))

        return self._queue.enqueue(mutation)

    # ---------------
    # Queries
    # ---------------

    @property
    def products(self) -> Tuple[Product, ...]:
        return tuple(self._products.items)

    @property
    def submissions(self) -> Tuple[AntiqueSubmission, ...]:
        return tuple(self._submissions.items)

    @property
    def offers(self) -> Tuple[Offer, ...]:
        return tuple(self._offers.items)

    @property
    def offer_discounts(self) -> Tuple[OfferDiscount, ...]:
        return tuple(self._offer_discounts.items)

    @property
    def categories(self) -> List[str]:
        return [ALL_CATEGORIES, *CATEGORIES]

    def get_product(self, product_id: str) -> Optional[Product]:
        return _find(self._products.items, product_id)

    def get_submission(self, submission_id: str) -> Optional[AntiqueSubmission]:
        return _find(self._submissions.items, submission_id)

    def get_offer(self, offer_id: str) -> Optional[Offer]:
        return _find(self._offers.items, offer_id)

    def search_products(self, category: Optional[str] = None, q: Optional[str] = None) -> List[Product]:
        results = list(self._products.items)
        if category and category != ALL_CATEGORIES:
            results = [p for p in results if p.category == category]
        if q:
            needle = q.lower()
            results = [p for p in results if needle in p.title.lower() or needle in p.description.lower()]
        return results

    def submissions_by_status(self, status: ReviewStatus) -> List[AntiqueSubmission]:
        return [s for s in self._submissions.items if s.status == ReviewStatus(status)]

    def offers_for_product(self, product_id: str) -> List[Offer]:
        return [o for o in self._offers.items if o.product_id == product_id]

    def active_offer_discounts(self) -> List[OfferDiscount]:
        return [d for d in self._offer_discounts.items if d.status == DiscountStatus.ACTIVE]

    # ---------------
    # Products
    # ---------------

    def _insert_product(self, data: ProductCreate) -> Product:
        product = Product(**data.model_dump(), id=self._new_id())
        self._commit(self._products, [*self._products.items, product])
        return product

    async def add_product(self, fields: Fields) -> Product:
        data = _coerce(ProductCreate, fields)
        return await self._queue.enqueue(lambda: self._insert_product(data))

    async def update_product(self, product: Fields) -> Optional[Product]:
        product = _coerce(Product, product)

        def mutation():
            if _find(self._products.items, product.id) is None:
                return None
            self._commit(self._products, _replace(self._products.items, product))
            return product

        return await self._queue.enqueue(mutation)

    async def delete_product(self, product_id: str) -> bool:
        return await self._queue.enqueue(lambda: self._delete(self._products, product_id))

    def _delete(self, col: _Collection, entity_id: str) -> bool:
        if _find(col.items, entity_id) is None:
            return False
        self._commit(col, _without(col.items, entity_id))
        return True

    # ---------------
    # Submissions
    # ---------------

    async def add_submission(self, fields: Fields) -> AntiqueSubmission:
        data = _coerce(SubmissionCreate, fields)

        async def mutation():
            images = await image_codec.compress_async(data.images, **self._codec_options)
            submission = AntiqueSubmission(
                **data.model_dump(exclude={"images"}),
                images=images,
                id=self._new_id(),
                status=ReviewStatus.PENDING,
                submitted_at=self.clock(),
            )
            self._commit(self._submissions, [*self._submissions.items, submission])
            return submission

        return await self._queue.enqueue(mutation)

    async def update_submission(self, submission: Fields) -> Optional[AntiqueSubmission]:
        submission = _coerce(AntiqueSubmission, submission)
        return await self._queue.enqueue(
            lambda: self._apply_review_update(EntityKind.SUBMISSION, self._submissions, submission)
        )

    async def approve_submission(self, submission_id: str) -> Optional[AntiqueSubmission]:
        return await self._set_review_status(EntityKind.SUBMISSION, self._submissions, submission_id, ReviewStatus.APPROVED)

    async def reject_submission(self, submission_id: str) -> Optional[AntiqueSubmission]:
        return await self._set_review_status(EntityKind.SUBMISSION, self._submissions, submission_id, ReviewStatus.REJECTED)

    async def delete_submission(self, submission_id: str) -> bool:
        return await self._queue.enqueue(lambda: self._delete(self._submissions, submission_id))

    async def add_to_shop(self, submission_id: str) -> Optional[Product]:
        """Copy an approved submission into a new, independent product."""

        def mutation():
            submission = _find(self._submissions.items, submission_id)
            if submission is None:
                return None
            if submission.status != ReviewStatus.APPROVED:
                raise NotApprovedError(submission_id, submission.status.value)
            product = self._insert_product(ProductCreate(
                title=submission.title,
                description=submission.description,
                price=submission.price,
                category=submission.category,
                images=submission.images[:3],
                subject=submission.subject,
            ))
            self._announce(ADDED_TO_SHOP, title=submission.title)
            return product

        return await self._queue.enqueue(mutation)

    # ---------------
    # Offers
    # ---------------

    async def add_offer(self, fields: Fields) -> Offer:
        data = _coerce(OfferCreate, fields)

        def mutation():
            offer = Offer(
                **data.model_dump(),
                id=self._new_id(),
                status=ReviewStatus.PENDING,
                submitted_at=self.clock(),
            )
            self._commit(self._offers, [*self._offers.items, offer])
            return offer

        return await self._queue.enqueue(mutation)

    async def update_offer(self, offer: Fields) -> Optional[Offer]:
        offer = _coerce(Offer, offer)
        return await self._queue.enqueue(
            lambda: self._apply_review_update(EntityKind.OFFER, self._offers, offer)
        )

    async def approve_offer(self, offer_id: str) -> Optional[Offer]:
        return await self._set_review_status(EntityKind.OFFER, self._offers, offer_id, ReviewStatus.APPROVED)

    async def reject_offer(self, offer_id: str) -> Optional[Offer]:
        return await self._set_review_status(EntityKind.OFFER, self._offers, offer_id, ReviewStatus.REJECTED)

    async def delete_offer(self, offer_id: str) -> bool:
        return await self._queue.enqueue(lambda: self._delete(self._offers, offer_id))

    # ---------------------
    # Offers & Discounts
    # ---------------------

    async def add_offer_discount(self, fields: Fields) -> OfferDiscount:
        data = _coerce(OfferDiscountCreate, fields)

        def mutation():
            discount = OfferDiscount(**data.model_dump(), id=self._new_id(), created_at=self.clock())
            self._commit(self._offer_discounts, [*self._offer_discounts.items, discount])
            return discount

        return await self._queue.enqueue(mutation)

    async def update_offer_discount(self, discount: Fields) -> Optional[OfferDiscount]:
        discount = _coerce(OfferDiscount, discount)

        def mutation():
            if _find(self._offer_discounts.items, discount.id) is None:
                return None
            self._commit(self._offer_discounts, _replace(self._offer_discounts.items, discount))
            return discount

        return await self._queue.enqueue(mutation)

    async def delete_offer_discount(self, discount_id: str) -> bool:
        return await self._queue.enqueue(lambda: self._delete(self._offer_discounts, discount_id))


def create_catalog_store(
    settings: Settings = default_settings,
    sink: Optional[NotificationSink] = None,
    native_notifier: Optional[NativeNotifier] = None,
) -> CatalogStore:
    area = StorageArea(quota=settings.storage_quota, path=settings.storage_path)
    catalog = CatalogStore(LocalStore(area), sink or NotificationCenter(), native_notifier, settings)
    catalog.load()
    return catalog
